"""Command-line entry point: ``python -m render_sandbox <command> ...``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml

from .batch import render_batch
from .browsers import resolve_chromium_binary
from .config import RenderSettings, load_config
from .content import GeneratorSpec, Library
from .errors import InvalidArgument, RenderError
from .generator import evaluate, generate
from .untrusted_html import eval_untrusted_html, screenshot_untrusted_html
from .vendor import fetch_vendor_library
from .window import WindowSize

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _read_structured(path: str) -> Any:
    # YAML is a superset of JSON, so either format loads.
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_generator(path: str) -> GeneratorSpec:
    data = _read_structured(path)
    if not isinstance(data, dict):
        raise InvalidArgument(f"{path}: generator spec must be a mapping")
    return GeneratorSpec.from_mapping(data)


def _file_set(entry_file: str, extra: list[str], entry_path: str) -> dict[str, bytes]:
    files = {entry_path: Path(entry_file).read_bytes()}
    for item in extra:
        url_path, sep, local = item.partition("=")
        if not sep or not url_path.startswith("/"):
            raise InvalidArgument(f"--file expects URLPATH=FILE with URLPATH starting with '/': {item!r}")
        files[url_path] = Path(local).read_bytes()
    return files


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="render_sandbox", description="Render untrusted HTML/JS in a Chromium sandbox.")
    ap.add_argument("--config", default=None, help="YAML settings file (default: $RENDER_SANDBOX_CONFIG)")
    ap.add_argument("--log-level", default=None, help="Override the configured log level")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("eval", help="Print the body text of a page after its scripts run")
    p.add_argument("index_html")
    p.add_argument("--file", action="append", default=[], metavar="URLPATH=FILE", help="Extra file to serve")

    p = sub.add_parser("screenshot", help="Screenshot a page")
    p.add_argument("index_html")
    p.add_argument("output")
    p.add_argument("--file", action="append", default=[], metavar="URLPATH=FILE", help="Extra file to serve")
    p.add_argument("--width", type=int, default=640)
    p.add_argument("--height", type=int, default=480)

    p = sub.add_parser("generate", help="Render one token of a generator program to PNG")
    p.add_argument("generator", help="JSON/YAML with script, library and aspectRatio")
    p.add_argument("token", help="JSON token data")
    p.add_argument("output")

    p = sub.add_parser("features", help="Print the body text a generator program produces for a token")
    p.add_argument("generator")
    p.add_argument("token")

    p = sub.add_parser("batch", help="Render a JSON list of tokens to <outdir>/<token id>.png")
    p.add_argument("generator")
    p.add_argument("tokens")
    p.add_argument("output_dir")
    p.add_argument("--concurrency", type=int, default=None)

    p = sub.add_parser("fetch-vendor", help="Download a library payload into the vendor directory")
    p.add_argument("--library", default=Library.P5JS.value, choices=[m.value for m in Library if m.filename])
    p.add_argument("--url", default=None, help="Override the download URL")

    return ap


async def _run(args: argparse.Namespace, settings: RenderSettings) -> int:
    vendor_dir = Path(settings.vendor_dir) if settings.vendor_dir else None

    if args.command == "fetch-vendor":
        path = fetch_vendor_library(args.library, vendor_dir, url=args.url)
        print(path)
        return 0

    binary = await resolve_chromium_binary(settings.chromium_binary)
    options = settings.render_options(binary)

    if args.command == "eval":
        files = _file_set(args.index_html, args.file, settings.entry_path)
        print(await eval_untrusted_html(files, options))
        return 0

    if args.command == "screenshot":
        if args.width <= 0 or args.height <= 0:
            raise InvalidArgument("--width and --height must be positive")
        files = _file_set(args.index_html, args.file, settings.entry_path)
        options = options.with_window_size(WindowSize(width=args.width, height=args.height))
        await screenshot_untrusted_html(files, args.output, options)
        return 0

    spec = _load_generator(args.generator)

    if args.command == "generate":
        await generate(
            spec,
            _read_json(args.token),
            args.output,
            options,
            long_edge=settings.long_edge,
            vendor_dir=vendor_dir,
        )
        return 0

    if args.command == "features":
        print(await evaluate(spec, _read_json(args.token), options, vendor_dir=vendor_dir))
        return 0

    if args.command == "batch":
        tokens = _read_json(args.tokens)
        if not isinstance(tokens, list):
            raise InvalidArgument(f"{args.tokens}: expected a JSON list of token data")
        outcomes = await render_batch(
            spec,
            tokens,
            args.output_dir,
            concurrency=args.concurrency or settings.concurrency,
            options=options,
            long_edge=settings.long_edge,
            vendor_dir=vendor_dir,
        )
        for outcome in outcomes:
            status = "ok" if outcome.ok else f"failed: {outcome.error}"
            print(f"{outcome.token_id}\t{outcome.output_path}\t{status}")
        return 0 if all(o.ok for o in outcomes) else 1

    raise InvalidArgument(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_config(args.config)
    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        configure_logging(args.log_level or "INFO")
        logger.error("Invalid configuration", command=args.command, error=str(e))
        return 1
    configure_logging(args.log_level or settings.log_level)

    try:
        return asyncio.run(_run(args, settings))
    except RenderError as e:
        logger.error("Render failed", command=args.command, error_kind=type(e).__name__, error=str(e))
        return 1
    except OSError as e:
        logger.error("I/O error", command=args.command, error=str(e))
        return 1
    except (ValueError, yaml.YAMLError) as e:
        logger.error("Unreadable input", command=args.command, error=str(e))
        return 1
