"""Adaptive black-level threshold and detection-window control."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger("autocrop.tracking.sensitivity")


class SensitivityController:
    """Hysteresis loop over the detector's black-level limit.

    Full-frame detections that still passed the margin test raise the limit by
    ``step + 1`` (towards ``max_limit``); samples outside the margin lower it by ``step``
    (towards 0) and request an immediate retry with a zero-length window.
    """

    def __init__(self, max_limit: int, base_window_seconds: float, step: int = 1) -> None:
        if not 0 <= max_limit <= 255:
            raise ValueError(f"max_limit must be in [0, 255], got {max_limit}")
        self.max_limit = max_limit
        self.base_window_seconds = base_window_seconds
        self.step = step
        self.limit = max_limit
        self.window_seconds = base_window_seconds

    def update(self, detected_full_frame: bool, in_margin: bool) -> None:
        previous = (self.limit, self.window_seconds)
        if in_margin:
            if detected_full_frame and self.limit < self.max_limit:
                self.limit = min(self.limit + self.step + 1, self.max_limit)
            self.window_seconds = self.base_window_seconds
        elif self.limit > 0:
            self.limit = max(self.limit - self.step, 0)
            self.window_seconds = 0.0
        if previous != (self.limit, self.window_seconds):
            LOGGER.debug(
                "Sensitivity limit %d -> %d, window %.2fs -> %.2fs",
                previous[0],
                self.limit,
                previous[1],
                self.window_seconds,
            )

    def reset_window(self) -> None:
        self.window_seconds = self.base_window_seconds

    def reset(self) -> None:
        self.limit = self.max_limit
        self.window_seconds = self.base_window_seconds
