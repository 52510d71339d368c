"""Playback lifecycle: routes host events to the scheduler and decision engine."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Type

from autocrop.config import AutocropConfig, CropMode
from autocrop.engine.decision import CycleOutcome, CycleResult, DecisionEngine
from autocrop.engine.scheduler import CancelToken, CycleScheduler
from autocrop.errors import DetectorUnavailable
from autocrop.events import (
    EndOfFile,
    FileLoaded,
    PauseChanged,
    PlaybackEvent,
    PlaybackRestart,
    Seek,
    ToggleRequested,
)
from autocrop.host.interfaces import Detector, FilterController, Notifier, PlaybackClock
from autocrop.types import FrameSize

LOGGER = logging.getLogger("autocrop.engine.session")


class AutocropSession:
    """Owns the engine and scheduler for whatever file the host is playing.

    Must be driven from inside the host's running asyncio loop.
    """

    def __init__(
        self,
        config: AutocropConfig,
        detector: Detector,
        filters: FilterController,
        clock: PlaybackClock,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.config = config
        self.clock = clock
        self.notifier = notifier or Notifier()
        self.engine = DecisionEngine(config, detector, filters, clock)
        self.scheduler: Optional[CycleScheduler] = None
        self.paused = False
        self.seeking = False
        self.toggled_off = False
        self._handlers: Dict[Type, Callable] = {
            FileLoaded: self.on_file_loaded,
            Seek: self.on_seek,
            PlaybackRestart: self.on_playback_restart,
            PauseChanged: self.on_pause_changed,
            EndOfFile: self.on_end_of_file,
            ToggleRequested: self.on_toggle,
        }

    @property
    def running(self) -> bool:
        return self.scheduler is not None and not self.scheduler.closed

    def handle(self, event: PlaybackEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported playback event: {event!r}")
        handler(event)

    def on_file_loaded(self, event: FileLoaded) -> None:
        if self.scheduler is not None:
            self.cleanup()
        if not self.config.active:
            LOGGER.info("Disable script.")
            return
        if not event.has_video or event.album_art:
            LOGGER.warning("Only works for videos.")
            return
        frame = FrameSize(event.width, event.height)
        if self.config.min_aspect_ratio < frame.aspect_ratio:
            LOGGER.info("Disable script, Aspect Ratio > min_aspect_ratio.")
            return

        self.engine.start_session(frame)
        mode = self.config.mode
        self.scheduler = CycleScheduler(
            self._run_cycle,
            period_seconds=self.config.period_seconds,
            periodic=mode.is_periodic,
            start_delay_seconds=self.config.start_delay_seconds,
            oneshot_cycles=self.config.oneshot_cycles,
            on_stop=self._on_stop,
        )
        self.toggled_off = mode is CropMode.AUTO_MANUAL
        if self.paused or self.toggled_off:
            self.scheduler.suspended = True
            self.engine.state.suspended = True
        if mode is not CropMode.ON_DEMAND:
            self.scheduler.start()

    def on_seek(self, event: Optional[Seek] = None) -> None:
        self.seeking = True
        self._stop("seek", reset_tracker=True)

    def on_playback_restart(self, event: Optional[PlaybackRestart] = None) -> None:
        self.seeking = False
        if not self.paused and not self.toggled_off:
            self._resume("playback-restart")

    def on_pause_changed(self, event: PauseChanged) -> None:
        if event.paused:
            self.paused = True
            self._stop("pause", reset_tracker=True)
        else:
            self.paused = False
            if not self.toggled_off and not self.seeking:
                self._resume("unpause")

    def on_end_of_file(self, event: Optional[EndOfFile] = None) -> None:
        self.cleanup()

    def on_toggle(self, event: Optional[ToggleRequested] = None) -> None:
        if self.scheduler is None:
            return
        label = self.config.label
        if not self.config.mode.is_periodic:
            self.scheduler.request_once()
            self._notify(f"{label} once.")
            return
        if not self.toggled_off:
            self.toggled_off = True
            self.engine.remove_crop()
            if not self.paused:
                self._stop("toggle")
            self._notify(f"{label} paused.")
        else:
            self.toggled_off = False
            if not self.paused:
                self._resume("toggle")
            self._notify(f"{label} resumed.")

    def cleanup(self) -> None:
        LOGGER.info("Cleanup.")
        if self.scheduler is not None:
            self.scheduler.shutdown()
            self.scheduler = None
        self.engine.end_session()
        self.toggled_off = False

    async def wait_idle(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.wait_idle()

    async def _run_cycle(self, token: CancelToken) -> CycleOutcome:
        try:
            return await self.engine.run_cycle(token)
        except DetectorUnavailable as exc:
            LOGGER.error("%s", exc)
            self.cleanup()
            return CycleOutcome(CycleResult.FAILED, reason=str(exc))

    def _stop(self, reason: str, reset_tracker: bool = False) -> None:
        if self.scheduler is None:
            return
        self.scheduler.suspend(reason)
        if reset_tracker:
            self.engine.reset_tracker()

    def _on_stop(self, reason: str) -> None:
        state = self.engine.state
        if state is None:
            return
        state.suspended = True
        state.tracker.log_summary()

    def _resume(self, reason: str) -> None:
        if self.scheduler is None:
            return
        if self.engine.state is not None:
            self.engine.state.suspended = False
        self.scheduler.resume(reason, playback_time=self.clock.elapsed_since_playback_start())

    def _notify(self, text: str) -> None:
        self.notifier.show_message(text, self.config.notify_seconds)
