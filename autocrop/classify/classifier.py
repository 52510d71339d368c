"""Per-sample classification of detected rectangles."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from autocrop.types import (
    FrameSize,
    Rectangle,
    SampleShape,
    horizontal_offset_bounds,
    in_margin,
    is_symmetric_x,
    is_symmetric_y,
    min_height_for_aspect,
    vertical_offset_bounds,
)

LOGGER = logging.getLogger("autocrop.classify")


@dataclass(frozen=True)
class Classification:
    """Labels attached to one raw detector sample."""

    rect: Rectangle
    shape: SampleShape
    within_frame: bool
    valid_aspect: bool
    symmetric_x: bool
    x_in_margin: bool

    @property
    def in_margin(self) -> bool:
        return self.shape is not SampleShape.ASYMMETRIC

    @property
    def is_signal(self) -> bool:
        return self.within_frame


class SampleClassifier:
    """Classifies detector samples against the session's frame size and margins."""

    def __init__(
        self,
        frame: FrameSize,
        max_aspect_ratio: float,
        height_pixel_margin: int = 4,
        width_pixel_margin: int = 4,
        fixed_width: bool = True,
    ) -> None:
        self.frame = frame
        self.height_pixel_margin = height_pixel_margin
        self.width_pixel_margin = width_pixel_margin
        self.fixed_width = fixed_width
        self.min_height = min_height_for_aspect(frame, max_aspect_ratio)
        LOGGER.debug(
            "Classifier for %dx%d min_h=%d height_margin=%d fixed_width=%s",
            frame.w,
            frame.h,
            self.min_height,
            height_pixel_margin,
            fixed_width,
        )

    def normalize(self, rect: Rectangle) -> Rectangle:
        """Apply the fixed-width override (full frame width, zero x offset)."""
        if self.fixed_width:
            return rect.replace(w=self.frame.w, x=0)
        return rect

    def shape_of(self, rect: Rectangle) -> SampleShape:
        if is_symmetric_y(rect, self.frame):
            return SampleShape.SYMMETRIC
        bounds = vertical_offset_bounds(self.frame, rect, self.height_pixel_margin)
        if in_margin(rect.y, bounds):
            return SampleShape.IN_MARGIN
        return SampleShape.ASYMMETRIC

    def classify(self, raw: Rectangle) -> Classification:
        """Classify a raw sample.

        Negative sizes come back from the detector on black or ambiguous frames. Those,
        and rectangles reaching outside the frame, are reported with
        ``within_frame=False`` and must not be used.
        """
        if raw.has_negative_size or not self.normalize(raw).fits(self.frame):
            return Classification(
                rect=raw,
                shape=SampleShape.ASYMMETRIC,
                within_frame=False,
                valid_aspect=False,
                symmetric_x=False,
                x_in_margin=False,
            )
        rect = self.normalize(raw)
        x_bounds = horizontal_offset_bounds(self.frame, rect, self.width_pixel_margin)
        return Classification(
            rect=rect,
            shape=self.shape_of(rect),
            within_frame=True,
            valid_aspect=rect.h >= self.min_height,
            symmetric_x=is_symmetric_x(rect, self.frame),
            x_in_margin=in_margin(rect.x, x_bounds),
        )

    def clamp_to_min_height(self, rect: Rectangle) -> Rectangle:
        """Grow ``rect`` to the minimum height, re-centered vertically."""
        return rect.replace(h=self.min_height, y=(self.frame.h - self.min_height) // 2)
