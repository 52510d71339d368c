"""Abstract collaborators the engine drives inside the host media player."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from autocrop.types import Rectangle


class Detector(ABC):
    """Black-bar detector inserted into the host's filter graph while a cycle samples."""

    @abstractmethod
    def activate(self, sensitivity_limit: int, rounding_unit: int) -> bool:
        """Start sampling; return False when the host rejects the detector."""

    @abstractmethod
    def sample(self) -> Optional[Rectangle]:
        """Return the latest measured rectangle, or None when nothing was measured."""

    @abstractmethod
    def deactivate(self) -> None:
        """Remove the detector so the next activation starts fresh."""


class FilterController(ABC):
    """Applies or clears the crop filter on the host's video output."""

    @abstractmethod
    def apply_crop(self, rect: Rectangle) -> None:
        pass

    @abstractmethod
    def remove_crop(self) -> None:
        pass

    @abstractmethod
    def has_active_crop(self) -> bool:
        pass


class PlaybackClock(ABC):
    @abstractmethod
    def remaining_playtime(self) -> Optional[float]:
        """Seconds left in the current file, or None when unknown (e.g. live streams)."""

    @abstractmethod
    def elapsed_since_playback_start(self) -> float:
        pass


class Notifier:
    """On-screen messages for explicit user actions. The default implementation is silent."""

    def show_message(self, text: str, seconds: float) -> None:
        return None
