"""Exception types raised by the autocrop engine."""

from __future__ import annotations

from typing import Optional


class AutocropError(RuntimeError):
    """Base class for autocrop failures."""


class ConfigError(AutocropError, ValueError):
    """Invalid configuration value."""


class DetectorUnavailable(AutocropError):
    """The host refused to insert the detector; fatal for the current session."""


class NoSignal(AutocropError):
    """The detector produced no usable rectangle for this cycle."""


class InsufficientTime(AutocropError):
    """Not enough playtime left to run a detection window."""

    def __init__(self, needed: float, remaining: Optional[float]) -> None:
        super().__init__(f"Not enough time for autocrop (need {needed:.2f}s, remaining {remaining}s)")
        self.needed = needed
        self.remaining = remaining


class InterruptedCycle(AutocropError):
    """A pause, seek or toggle cancelled the cycle before its sample was evaluated."""
