"""In-memory host collaborators and an offline replayer for recorded detector traces."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Deque, Iterable, List, Optional, Tuple

import pandas as pd

from autocrop.config import AutocropConfig
from autocrop.engine.decision import DecisionEngine
from autocrop.host.interfaces import Detector, FilterController, Notifier, PlaybackClock
from autocrop.types import FrameSize, Rectangle

LOGGER = logging.getLogger("autocrop.host.replay")

TRACE_COLUMNS = ("w", "h", "x", "y")
TRACE_EVENTS = {"seek", "pause", "unpause", "toggle"}


class TraceDetector(Detector):
    """Returns queued rectangles one per ``sample`` call."""

    def __init__(self, samples: Iterable[Optional[Rectangle]] = (), available: bool = True) -> None:
        self.samples: Deque[Optional[Rectangle]] = deque(samples)
        self.available = available
        self.active = False
        self.activations: List[Tuple[int, int]] = []

    def push(self, sample: Optional[Rectangle]) -> None:
        self.samples.append(sample)

    def activate(self, sensitivity_limit: int, rounding_unit: int) -> bool:
        if not self.available:
            return False
        self.active = True
        self.activations.append((sensitivity_limit, rounding_unit))
        return True

    def sample(self) -> Optional[Rectangle]:
        if not self.samples:
            return None
        return self.samples.popleft()

    def deactivate(self) -> None:
        self.active = False


class RecordingFilterController(FilterController):
    """Keeps the current crop in memory and logs every call."""

    def __init__(self) -> None:
        self.crop: Optional[Rectangle] = None
        self.calls: List[Tuple[str, Optional[Rectangle]]] = []

    def apply_crop(self, rect: Rectangle) -> None:
        self.crop = rect
        self.calls.append(("apply", rect))

    def remove_crop(self) -> None:
        self.crop = None
        self.calls.append(("remove", None))

    def has_active_crop(self) -> bool:
        return self.crop is not None

    @property
    def applied(self) -> List[Rectangle]:
        return [rect for action, rect in self.calls if action == "apply" and rect is not None]


class ManualClock(PlaybackClock):
    def __init__(self, remaining: Optional[float] = None, elapsed: float = 0.0) -> None:
        self.remaining = remaining
        self.elapsed = elapsed

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds
        if self.remaining is not None:
            self.remaining = max(self.remaining - seconds, 0.0)

    def remaining_playtime(self) -> Optional[float]:
        return self.remaining

    def elapsed_since_playback_start(self) -> float:
        return self.elapsed


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.messages: List[str] = []

    def show_message(self, text: str, seconds: float) -> None:
        self.messages.append(text)


def load_trace(path: Path) -> pd.DataFrame:
    """Read a trace CSV with ``w,h,x,y`` columns and an optional ``event`` column."""
    trace = pd.read_csv(path)
    missing = [col for col in TRACE_COLUMNS if col not in trace.columns]
    if missing:
        raise ValueError(f"Trace {path} is missing columns: {', '.join(missing)}")
    if "event" not in trace.columns:
        trace["event"] = ""
    trace["event"] = trace["event"].fillna("").astype(str).str.strip().str.lower()
    unknown = sorted(set(trace["event"]) - TRACE_EVENTS - {""})
    if unknown:
        raise ValueError(f"Trace {path} has unknown events: {', '.join(unknown)}")
    LOGGER.info("Loaded trace %s rows=%d", path, len(trace))
    return trace


def _row_rectangle(row: pd.Series) -> Optional[Rectangle]:
    values = [row[col] for col in TRACE_COLUMNS]
    if any(pd.isna(v) for v in values):
        return None
    w, h, x, y = (int(v) for v in values)
    return Rectangle(w=w, h=h, x=x, y=y)


def replay_trace(trace: pd.DataFrame, frame: FrameSize, config: AutocropConfig) -> pd.DataFrame:
    """Feed every trace row through :meth:`DecisionEngine.evaluate` and tabulate decisions.

    Events are applied before the row's sample: ``seek``/``pause`` clear the majority
    tracker, ``toggle`` removes an active crop, ``unpause`` only marks the row (a paused
    player produces no samples, so there is nothing to resume). Rows carrying only an event
    are not evaluated.
    """
    filters = RecordingFilterController()
    engine = DecisionEngine(config, TraceDetector(), filters, ManualClock())
    state = engine.start_session(frame)

    rows = []
    for idx, row in trace.iterrows():
        event = str(row.get("event", "") or "")
        if event in ("seek", "pause"):
            state.tracker.log_summary()
            engine.reset_tracker()
        elif event == "toggle":
            engine.remove_crop()
        sample = _row_rectangle(row)
        if sample is None and event:
            continue
        outcome = engine.evaluate(sample)
        record = outcome.to_dict()
        record["row"] = idx
        record["event"] = event
        record["applied"] = state.applied.as_filter_args()
        rows.append(record)

    engine.end_session()
    decisions = pd.DataFrame(rows)
    if not decisions.empty:
        LOGGER.info(
            "Replayed %d samples: %d applied, %d no-signal",
            len(decisions),
            int((decisions["result"] == "applied").sum()),
            int((decisions["result"] == "no_signal").sum()),
        )
    return decisions
