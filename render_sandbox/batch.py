"""Render many tokens of one generator concurrently."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog

from .content import GeneratorSpec
from .errors import InvalidArgument, RenderError
from .generator import generate
from .untrusted_html import RenderOptions
from .window import DEFAULT_LONG_EDGE

logger = structlog.get_logger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class BatchOutcome:
    token_id: str
    output_path: Path
    ok: bool
    error: str | None = None


def _token_id(token_data: Any, index: int) -> str:
    if isinstance(token_data, dict):
        for key in ("tokenId", "token_id", "id"):
            value = token_data.get(key)
            if value is not None:
                return _UNSAFE_NAME_RE.sub("_", str(value))[:128] or str(index)
    return str(index)


def _unique_token_ids(token_list: list[Any]) -> list[str]:
    # Case-folded so two tokens never share a file on case-insensitive disks.
    used: set[str] = set()
    token_ids = []
    for index, token_data in enumerate(token_list):
        base = _token_id(token_data, index)
        token_id, suffix = base, index
        while token_id.casefold() in used:
            token_id = f"{base}-{suffix}"
            suffix += 1
        used.add(token_id.casefold())
        token_ids.append(token_id)
    return token_ids


async def render_batch(
    spec: GeneratorSpec,
    tokens: Iterable[Any],
    output_dir: str | Path,
    *,
    concurrency: int = 4,
    options: RenderOptions | None = None,
    long_edge: int = DEFAULT_LONG_EDGE,
    vendor_dir: Path | None = None,
) -> list[BatchOutcome]:
    """Screenshot every token in ``tokens`` into ``output_dir/<token id>.png``.

    At most ``concurrency`` renders run at once. A failing token is recorded in
    its outcome and does not stop the others; nothing is retried. Token ids
    that clash after sanitizing get a ``-<index>`` suffix.
    """
    if not isinstance(concurrency, int) or concurrency < 1:
        raise InvalidArgument(f"concurrency must be a positive integer: {concurrency!r}")
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    semaphore = asyncio.Semaphore(concurrency)
    token_list = list(tokens)
    token_ids = _unique_token_ids(token_list)

    async def _one(token_id: str, token_data: Any) -> BatchOutcome:
        output_path = out_dir / f"{token_id}.png"
        async with semaphore:
            try:
                await generate(
                    spec,
                    token_data,
                    output_path,
                    options,
                    long_edge=long_edge,
                    vendor_dir=vendor_dir,
                )
            except RenderError as e:
                logger.error("Token render failed", token_id=token_id, error=str(e))
                return BatchOutcome(token_id=token_id, output_path=output_path, ok=False, error=str(e))
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                logger.exception("Token render crashed", token_id=token_id, error=error)
                return BatchOutcome(token_id=token_id, output_path=output_path, ok=False, error=error)
        return BatchOutcome(token_id=token_id, output_path=output_path, ok=True)

    logger.info("Rendering batch", tokens=len(token_list), concurrency=concurrency)
    outcomes = await asyncio.gather(*(_one(token_id, t) for token_id, t in zip(token_ids, token_list)))
    failed = sum(1 for o in outcomes if not o.ok)
    logger.info("Batch completed", total=len(outcomes), passed=len(outcomes) - failed, failed=failed)
    return list(outcomes)
