"""Common dataclasses and geometry predicates used across the autocrop package."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Tuple

# Rectangle key order: w, h, x, y (pixel units)
RectKey = Tuple[int, int, int, int]
Bounds = Tuple[float, float]


class SampleShape(enum.Enum):
    """Vertical placement of a detected rectangle relative to the frame center."""

    SYMMETRIC = "Symmetric"
    IN_MARGIN = "In Margin"
    ASYMMETRIC = "Asymmetric"


@dataclass(frozen=True)
class FrameSize:
    """Original (uncropped) video dimensions for one playback session."""

    w: int
    h: int

    def __post_init__(self) -> None:
        if self.w <= 0 or self.h <= 0:
            raise ValueError(f"Frame size must be positive, got {self.w}x{self.h}")

    @property
    def aspect_ratio(self) -> float:
        return self.w / self.h

    def full_rect(self) -> "Rectangle":
        return Rectangle(w=self.w, h=self.h, x=0, y=0)


@dataclass(frozen=True)
class Rectangle:
    """Crop region: size ``w x h`` at top-left offset ``(x, y)`` in the original frame."""

    w: int
    h: int
    x: int
    y: int

    @property
    def key(self) -> RectKey:
        return (self.w, self.h, self.x, self.y)

    @property
    def has_negative_size(self) -> bool:
        return self.w < 0 or self.h < 0

    def fits(self, frame: FrameSize) -> bool:
        """True when the rectangle lies entirely inside ``frame``."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.x + self.w <= frame.w
            and self.y + self.h <= frame.h
        )

    def same_size(self, other: "Rectangle") -> bool:
        return self.w == other.w and self.h == other.h

    def replace(self, **changes: int) -> "Rectangle":
        values = {"w": self.w, "h": self.h, "x": self.x, "y": self.y}
        values.update(changes)
        return Rectangle(**values)

    def as_filter_args(self) -> str:
        return f"w={self.w}:h={self.h}:x={self.x}:y={self.y}"


def is_symmetric_x(detected: Rectangle, frame: FrameSize) -> bool:
    """True when the rectangle is exactly centered horizontally."""
    return detected.x == (frame.w - detected.w) / 2


def is_symmetric_y(detected: Rectangle, frame: FrameSize) -> bool:
    """True when the rectangle is exactly centered vertically."""
    return detected.y == (frame.h - detected.h) / 2


def vertical_offset_bounds(frame: FrameSize, detected: Rectangle, pixel_margin: int) -> Bounds:
    """Return the ``(low, high)`` y offsets accepted around perfect vertical centering."""
    low = (frame.h - detected.h - pixel_margin) / 2
    high = (frame.h - detected.h + pixel_margin) / 2
    return low, high


def horizontal_offset_bounds(frame: FrameSize, detected: Rectangle, pixel_margin: int) -> Bounds:
    """Return the ``(low, high)`` x offsets accepted around perfect horizontal centering."""
    low = (frame.w - detected.w - pixel_margin) / 2
    high = (frame.w - detected.w + pixel_margin) / 2
    return low, high


def in_margin(offset: int, bounds: Bounds) -> bool:
    low, high = bounds
    return low <= offset <= high


def height_within_pixels(candidate_h: int, applied_h: int, pixel_margin: int) -> bool:
    """True when the candidate height is within ``pixel_margin`` pixels of the applied one."""
    return applied_h - pixel_margin <= candidate_h <= applied_h + pixel_margin


def height_within_percent(candidate_h: int, applied_h: int, pct: float) -> bool:
    """True when the candidate height lies within ``applied_h * (1 - pct)`` and
    ``applied_h * (1 + pct / (1 - pct))``.

    The upper bound is widened so that shrinking by ``pct`` and growing back lands on the
    same band.
    """
    if not 0.0 <= pct < 1.0:
        raise ValueError(f"pct must be in [0, 1), got {pct}")
    pct_up = pct / (1.0 - pct)
    return applied_h - applied_h * pct <= candidate_h <= applied_h + applied_h * pct_up


def min_height_for_aspect(frame: FrameSize, max_aspect_ratio: float) -> int:
    """Smallest crop height allowed by ``max_aspect_ratio``, rounded up to an even value."""
    min_h = int(math.floor(frame.w / max_aspect_ratio))
    if min_h % 2 != 0:
        min_h += 1
    return min_h
