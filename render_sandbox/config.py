"""Configuration for the render CLI."""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .content import ENTRY_PATH
from .untrusted_html import RenderOptions
from .window import DEFAULT_LONG_EDGE


class RenderSettings(BaseModel):
    """Settings for command-line renders. Library callers pass RenderOptions directly."""

    # Browser settings
    chromium_binary: Optional[str] = Field(default=None, description="Chromium binary; auto-detected when unset")
    no_sandbox: bool = Field(default=False, description="Pass --no-sandbox (some containers need it)")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Kill the browser after this many seconds")
    virtual_time_budget_ms: Optional[int] = Field(default=None, ge=0, description="Chromium virtual time budget")

    # Page settings
    entry_path: str = Field(default=ENTRY_PATH, description="URL path of the entry document")
    long_edge: int = Field(default=DEFAULT_LONG_EDGE, gt=0, description="Screenshot long-edge size in pixels")
    vendor_dir: Optional[str] = Field(default=None, description="Directory holding vendored libraries")

    # Batch settings
    concurrency: int = Field(default=4, ge=1, description="Renders in flight during a batch")

    log_level: str = Field(default="INFO", description="Logging level")

    def render_options(self, chromium_binary: str) -> RenderOptions:
        return RenderOptions(
            entry_path=self.entry_path,
            chromium_binary=chromium_binary,
            timeout_seconds=self.timeout_seconds,
            virtual_time_budget_ms=self.virtual_time_budget_ms,
            no_sandbox=self.no_sandbox,
        )


def load_config(config_path: Optional[str] = None) -> RenderSettings:
    """Load settings from a YAML file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("RENDER_SANDBOX_CONFIG", "config/render.yaml")

    config_data = {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    env_overrides = {
        "chromium_binary": os.getenv("CHROMIUM_PATH"),
        "timeout_seconds": os.getenv("RENDER_TIMEOUT_SECONDS"),
        "no_sandbox": os.getenv("RENDER_NO_SANDBOX"),
        "concurrency": os.getenv("RENDER_CONCURRENCY"),
        "log_level": os.getenv("LOG_LEVEL"),
    }

    for key, value in env_overrides.items():
        if value is not None:
            if key == "timeout_seconds":
                value = float(value)
            elif key == "concurrency":
                value = int(value)
            elif key == "no_sandbox":
                value = value.lower() in ("true", "1", "yes")
            config_data[key] = value

    return RenderSettings(**config_data)
