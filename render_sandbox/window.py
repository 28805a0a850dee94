"""Aspect ratio handling and window sizing for screenshots."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from numbers import Real

from .errors import InvalidArgument

DEFAULT_LONG_EDGE = 2400

_RATIO_RE = re.compile(r"^(0|[1-9][0-9]*)/(0|[1-9][0-9]*)$")
_DECIMAL_RE = re.compile(r"^(0|[1-9][0-9]*)?(?:\.([0-9]+))?$")


@dataclass(frozen=True)
class WindowSize:
    width: int
    height: int

    def flag_value(self) -> str:
        return f"{self.width},{self.height}"


DEFAULT_WINDOW_SIZE = WindowSize(width=640, height=480)


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def check_aspect_ratio(aspect_ratio: object, context: str) -> None:
    if not _is_number(aspect_ratio) or not math.isfinite(aspect_ratio) or aspect_ratio <= 0:
        raise InvalidArgument(f"{context}: invalid aspect ratio {aspect_ratio!r}")


def compute_window_size(aspect_ratio: float, long_edge: int = DEFAULT_LONG_EDGE) -> WindowSize:
    """Map an aspect ratio (width / height) to pixel dimensions.

    The longer side is always ``long_edge``; the shorter side is rounded to the
    nearest pixel and never drops below one.
    """
    check_aspect_ratio(aspect_ratio, "window size")
    if not isinstance(long_edge, int) or isinstance(long_edge, bool) or long_edge <= 0:
        raise InvalidArgument(f"window size: invalid long edge {long_edge!r}")

    if aspect_ratio <= 1:
        return WindowSize(width=max(1, _round_half_up(long_edge * aspect_ratio)), height=long_edge)
    return WindowSize(width=long_edge, height=max(1, _round_half_up(long_edge / aspect_ratio)))


def _round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; pixel sizes round .5 upward.
    return int(math.floor(x + 0.5))


def normalize_aspect_ratio(value: object) -> float:
    """Coerce an aspect ratio from project metadata into a float.

    Accepts numbers, ratio strings like ``"4/3"`` and decimal strings like
    ``"1.5"`` or ``".9"``.
    """
    if value is None:
        raise InvalidArgument(f"nullish aspect ratio: {value}")
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        ratio = _RATIO_RE.match(value)
        if ratio is not None:
            denominator = int(ratio.group(2))
            if denominator == 0:
                raise InvalidArgument(f"unsupported aspect ratio: {value!r}")
            return int(ratio.group(1)) / denominator
        if value and value != "." and _DECIMAL_RE.match(value):
            return float(value)
    raise InvalidArgument(f"unsupported aspect ratio: {value!r}")
