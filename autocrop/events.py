"""Playback events produced by the host player and consumed by the session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Seek:
    pass


@dataclass(frozen=True)
class PlaybackRestart:
    pass


@dataclass(frozen=True)
class PauseChanged:
    paused: bool


@dataclass(frozen=True)
class EndOfFile:
    pass


@dataclass(frozen=True)
class FileLoaded:
    width: int
    height: int
    has_video: bool = True
    album_art: bool = False


@dataclass(frozen=True)
class ToggleRequested:
    pass


PlaybackEvent = Union[Seek, PlaybackRestart, PauseChanged, EndOfFile, FileLoaded, ToggleRequested]
