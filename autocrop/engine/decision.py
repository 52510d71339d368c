"""Decision engine: turns detector samples into crop apply/remove decisions."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from autocrop.classify.classifier import Classification, SampleClassifier
from autocrop.config import AutocropConfig
from autocrop.errors import DetectorUnavailable, InsufficientTime, InterruptedCycle, NoSignal
from autocrop.host.interfaces import Detector, FilterController, PlaybackClock
from autocrop.tracking.majority import MajorityTracker
from autocrop.tracking.sensitivity import SensitivityController
from autocrop.types import (
    FrameSize,
    Rectangle,
    SampleShape,
    height_within_percent,
    height_within_pixels,
)

if TYPE_CHECKING:
    from autocrop.engine.scheduler import CancelToken

LOGGER = logging.getLogger("autocrop.engine")


class CycleResult(enum.Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    NO_SIGNAL = "no_signal"
    INSUFFICIENT_TIME = "insufficient_time"
    INTERRUPTED = "interrupted"
    BUSY = "busy"
    FAILED = "failed"

    @property
    def stops_driver(self) -> bool:
        return self in (CycleResult.INSUFFICIENT_TIME, CycleResult.INTERRUPTED, CycleResult.FAILED)


@dataclass
class CycleOutcome:
    result: CycleResult
    detected: Optional[Rectangle] = None
    shape: Optional[SampleShape] = None
    x_in_margin: Optional[bool] = None
    sensitivity_limit: Optional[int] = None
    window_seconds: Optional[float] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        detected = self.detected
        return {
            "result": self.result.value,
            "w": detected.w if detected else None,
            "h": detected.h if detected else None,
            "x": detected.x if detected else None,
            "y": detected.y if detected else None,
            "shape": self.shape.value if self.shape else None,
            "x_in_margin": self.x_in_margin,
            "sensitivity_limit": self.sensitivity_limit,
            "window_seconds": self.window_seconds,
            "reason": self.reason,
        }


@dataclass
class EngineState:
    """Per-session state; created on playback start and dropped at end of file."""

    frame: FrameSize
    applied: Rectangle
    classifier: SampleClassifier
    sensitivity: SensitivityController
    tracker: MajorityTracker = field(default_factory=MajorityTracker)
    last_detected: Optional[Rectangle] = None
    suspended: bool = False
    in_cycle: bool = False

    @property
    def sensitivity_limit(self) -> int:
        return self.sensitivity.limit

    @property
    def window_seconds(self) -> float:
        return self.sensitivity.window_seconds


@dataclass(frozen=True)
class CommitCheck:
    """Individual clauses of the crop commit predicate, kept for diagnostics."""

    differs: bool
    symmetric_x: bool
    majority_shape: bool
    height_change: bool
    above_min_height: bool
    confirmed: bool

    @property
    def commit(self) -> bool:
        return (
            self.differs
            and self.symmetric_x
            and self.majority_shape
            and self.height_change
            and self.above_min_height
            and self.confirmed
        )


class DecisionEngine:
    """Runs detection cycles and commits crops through the filter controller."""

    def __init__(
        self,
        config: AutocropConfig,
        detector: Detector,
        filters: FilterController,
        clock: PlaybackClock,
    ) -> None:
        self.config = config
        self.detector = detector
        self.filters = filters
        self.clock = clock
        self.state: Optional[EngineState] = None

    @property
    def active(self) -> bool:
        return self.state is not None

    def _require_state(self) -> EngineState:
        if self.state is None:
            raise RuntimeError("DecisionEngine has no active session; call start_session first")
        return self.state

    def start_session(self, frame: FrameSize) -> EngineState:
        cfg = self.config
        classifier = SampleClassifier(
            frame,
            max_aspect_ratio=cfg.max_aspect_ratio,
            height_pixel_margin=cfg.height_pixel_margin,
            width_pixel_margin=cfg.width_pixel_margin,
            fixed_width=cfg.fixed_width,
        )
        self.state = EngineState(
            frame=frame,
            applied=frame.full_rect(),
            classifier=classifier,
            sensitivity=SensitivityController(
                max_limit=cfg.detect_sensitivity_limit,
                base_window_seconds=cfg.detect_window_seconds,
                step=cfg.sensitivity_step,
            ),
        )
        LOGGER.info(
            "Session started frame=%dx%d min_h=%d limit=%d window=%.2fs",
            frame.w,
            frame.h,
            classifier.min_height,
            self.state.sensitivity_limit,
            self.state.window_seconds,
        )
        return self.state

    def end_session(self) -> None:
        """Remove any crop and the detector, then drop the session state."""
        if self.filters.has_active_crop():
            self.filters.remove_crop()
        self.detector.deactivate()
        state = self.state
        if state is not None:
            state.tracker.reset()
            state.sensitivity.reset()
        self.state = None

    def reset_tracker(self) -> None:
        if self.state is not None:
            self.state.tracker.reset()

    def remove_crop(self) -> bool:
        """Clear an active crop and reset ``applied`` to the full frame."""
        state = self._require_state()
        if not self.filters.has_active_crop():
            return False
        self.filters.remove_crop()
        state.applied = state.frame.full_rect()
        LOGGER.info("Crop removed, restored %dx%d", state.frame.w, state.frame.h)
        return True

    def check_time(self, window_seconds: float) -> None:
        needed = window_seconds + 1
        remaining = self.clock.remaining_playtime()
        if remaining is not None and needed > remaining:
            raise InsufficientTime(needed, remaining)

    async def run_cycle(self, token: "CancelToken") -> CycleOutcome:
        """One request -> wait -> sample -> evaluate sequence.

        Recoverable conditions come back as a :class:`CycleOutcome`;
        :class:`DetectorUnavailable` propagates to the caller.
        """
        state = self._require_state()
        if state.in_cycle:
            return self._outcome(state, CycleResult.BUSY, reason="cycle already in flight")
        state.in_cycle = True
        try:
            return await self._sample_and_evaluate(state, token)
        except InsufficientTime as exc:
            LOGGER.warning("%s", exc)
            return self._outcome(state, CycleResult.INSUFFICIENT_TIME, reason=str(exc))
        except InterruptedCycle as exc:
            LOGGER.debug("Cycle interrupted: %s", exc)
            return self._outcome(state, CycleResult.INTERRUPTED, reason=str(exc))
        finally:
            state.in_cycle = False

    async def _sample_and_evaluate(self, state: EngineState, token: "CancelToken") -> CycleOutcome:
        if token.cancelled or state.suspended:
            raise InterruptedCycle("cancelled before sampling")
        window = state.window_seconds
        self.check_time(window)
        if not self.detector.activate(state.sensitivity_limit, self.config.detect_rounding_unit):
            raise DetectorUnavailable(
                "Host rejected the crop detector; is the cropdetect filter available?"
            )
        try:
            if not await token.sleep(window):
                raise InterruptedCycle("cancelled during detection window")
            sample = self.detector.sample()
        finally:
            self.detector.deactivate()
        if token.cancelled or self.state is not state:
            raise InterruptedCycle("cancelled while reading sample")
        return self.evaluate(sample)

    def evaluate(self, sample: Optional[Rectangle]) -> CycleOutcome:
        """Classify ``sample``, update tracker and sensitivity, and commit if confirmed."""
        state = self._require_state()
        try:
            classification = self._classify(state, sample)
        except NoSignal as exc:
            state.sensitivity.reset_window()
            LOGGER.debug("Skipping cycle: %s", exc)
            return self._outcome(state, CycleResult.NO_SIGNAL, detected=sample, reason=str(exc))

        rect = classification.rect
        in_margin = classification.in_margin
        majority_shape = False
        if in_margin:
            # vote with the history so far, then count this sample
            majority_symmetric = state.tracker.dominant_is_symmetric()
            state.tracker.record(rect, classification.shape)
            majority_shape = majority_symmetric and classification.shape is SampleShape.SYMMETRIC

        above_min_height = classification.valid_aspect
        if in_margin and not above_min_height:
            # cap at max_aspect_ratio instead of rejecting the sample
            rect = state.classifier.clamp_to_min_height(rect)
            above_min_height = True

        check = self._commit_check(state, classification, rect, majority_shape, above_min_height)
        state.sensitivity.update(detected_full_frame=rect.h == state.frame.h, in_margin=in_margin)

        LOGGER.debug(
            "Detected %s shape=%s x_in_margin=%s commit=%s %s",
            rect.as_filter_args(),
            classification.shape.value,
            classification.x_in_margin,
            check.commit,
            check,
        )
        result = CycleResult.UNCHANGED
        if check.commit:
            self.filters.apply_crop(rect)
            state.applied = rect
            result = CycleResult.APPLIED
            LOGGER.info("Applied crop %s", rect.as_filter_args())
        state.last_detected = rect
        return self._outcome(
            state,
            result,
            detected=rect,
            shape=classification.shape,
            x_in_margin=classification.x_in_margin,
        )

    def _classify(self, state: EngineState, sample: Optional[Rectangle]) -> Classification:
        if sample is None:
            raise NoSignal("detector returned no data")
        classification = state.classifier.classify(sample)
        if not classification.is_signal:
            raise NoSignal(
                f"invalid detector sample {sample.as_filter_args()}, outside the frame or a black frame"
            )
        return classification

    def _commit_check(
        self,
        state: EngineState,
        classification: Classification,
        rect: Rectangle,
        majority_shape: bool,
        above_min_height: bool,
    ) -> CommitCheck:
        applied = state.applied
        within_pixels = height_within_pixels(rect.h, applied.h, self.config.height_pixel_margin)
        within_percent = height_within_percent(rect.h, applied.h, self.config.height_percent_margin)
        last = state.last_detected
        return CommitCheck(
            differs=not rect.same_size(applied),
            symmetric_x=classification.symmetric_x,
            majority_shape=majority_shape,
            height_change=not within_pixels or not within_percent,
            above_min_height=above_min_height,
            confirmed=last is not None and rect.h == last.h,
        )

    @staticmethod
    def _outcome(
        state: EngineState,
        result: CycleResult,
        detected: Optional[Rectangle] = None,
        shape: Optional[SampleShape] = None,
        x_in_margin: Optional[bool] = None,
        reason: str = "",
    ) -> CycleOutcome:
        return CycleOutcome(
            result=result,
            detected=detected,
            shape=shape,
            x_in_margin=x_in_margin,
            sensitivity_limit=state.sensitivity_limit,
            window_seconds=state.window_seconds,
            reason=reason,
        )
