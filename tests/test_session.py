import asyncio

import pytest

from autocrop.config import AutocropConfig
from autocrop.events import (
    EndOfFile,
    FileLoaded,
    PauseChanged,
    PlaybackRestart,
    Seek,
    ToggleRequested,
)
from autocrop.engine.session import AutocropSession
from autocrop.host.replay import (
    ManualClock,
    RecordingFilterController,
    RecordingNotifier,
    TraceDetector,
)
from autocrop.types import Rectangle

SCOPE = Rectangle(1920, 800, 0, 140)
LOADED = FileLoaded(width=1920, height=1080)


def make_session(detector=None, **overrides):
    params = {"detect_window_seconds": 0.0, "period_seconds": 0.0}
    params.update(overrides)
    config = AutocropConfig(**params).validate()
    detector = detector or TraceDetector()
    filters = RecordingFilterController()
    notifier = RecordingNotifier()
    session = AutocropSession(config, detector, filters, ManualClock(remaining=None), notifier)
    return session, detector, filters, notifier


async def _until(predicate, ticks: int = 500) -> None:
    for _ in range(ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def _spin(ticks: int = 50) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


def test_seek_during_window_discards_sample_until_restart():
    session, detector, filters, _ = make_session(
        TraceDetector([SCOPE, SCOPE, SCOPE]), detect_window_seconds=30.0
    )

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _until(lambda: detector.active)
        session.handle(Seek())
        await scheduler.wait_idle()
        after_seek = {
            "active": detector.active,
            "activations": len(detector.activations),
            "samples": len(detector.samples),
            "suspended": scheduler.suspended,
            "running": scheduler.running,
            "last_detected": session.engine.state.last_detected,
            "tracked": len(session.engine.state.tracker),
        }
        await _spin()
        still_waiting = len(detector.activations)
        session.handle(PlaybackRestart())
        await _until(lambda: detector.active)
        session.handle(EndOfFile())
        await scheduler.wait_idle()
        return after_seek, still_waiting

    after_seek, still_waiting = asyncio.run(scenario())
    assert after_seek == {
        "active": False,
        "activations": 1,
        "samples": 3,
        "suspended": True,
        "running": False,
        "last_detected": None,
        "tracked": 0,
    }
    assert still_waiting == 1
    assert len(detector.activations) == 2
    assert filters.calls == []
    assert not session.running


def test_periodic_session_applies_then_toggle_removes_crop():
    session, detector, filters, notifier = make_session(TraceDetector([SCOPE, SCOPE]))

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _until(lambda: bool(filters.applied))
        session.handle(ToggleRequested())
        await scheduler.wait_idle()
        paused_state = (filters.crop, scheduler.suspended, session.toggled_off)
        session.handle(ToggleRequested())
        running_after_resume = scheduler.running
        session.handle(EndOfFile())
        await scheduler.wait_idle()
        return paused_state, running_after_resume

    paused_state, running_after_resume = asyncio.run(scenario())
    assert filters.applied == [SCOPE]
    assert ("remove", None) in filters.calls
    assert paused_state == (None, True, True)
    assert running_after_resume
    assert notifier.messages == ["autocrop paused.", "autocrop resumed."]


def test_auto_manual_waits_for_first_toggle():
    session, detector, _, notifier = make_session(TraceDetector([SCOPE]), mode="auto_manual")

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _spin()
        idle_activations = len(detector.activations)
        session.handle(ToggleRequested())
        await _until(lambda: bool(detector.activations))
        session.handle(EndOfFile())
        await scheduler.wait_idle()
        return idle_activations

    assert asyncio.run(scenario()) == 0
    assert notifier.messages == ["autocrop resumed."]


def test_on_demand_toggle_runs_one_request():
    session, detector, filters, notifier = make_session(
        TraceDetector([SCOPE, SCOPE, SCOPE]), mode="on_demand"
    )

    async def scenario():
        session.handle(LOADED)
        await _spin()
        idle_activations = len(detector.activations)
        session.handle(ToggleRequested())
        await session.wait_idle()
        return idle_activations

    assert asyncio.run(scenario()) == 0
    assert len(detector.activations) == 2
    assert filters.applied == [SCOPE]
    assert notifier.messages == ["autocrop once."]


def test_single_mode_runs_once_at_start():
    session, detector, filters, _ = make_session(TraceDetector([SCOPE, SCOPE, SCOPE]), mode="single")

    async def scenario():
        session.handle(LOADED)
        await _spin()
        await session.wait_idle()

    asyncio.run(scenario())
    assert len(detector.activations) == 2
    assert filters.applied == [SCOPE]
    assert len(detector.samples) == 1


def test_paused_at_load_starts_on_unpause():
    session, detector, _, _ = make_session(TraceDetector([SCOPE]))

    async def scenario():
        session.handle(PauseChanged(paused=True))
        session.handle(LOADED)
        scheduler = session.scheduler
        await _spin()
        idle_activations = len(detector.activations)
        session.handle(PauseChanged(paused=False))
        await _until(lambda: bool(detector.activations))
        session.handle(EndOfFile())
        await scheduler.wait_idle()
        return idle_activations

    assert asyncio.run(scenario()) == 0


@pytest.mark.parametrize(
    "event",
    [
        FileLoaded(width=1920, height=1080, has_video=False),
        FileLoaded(width=600, height=600, album_art=True),
        FileLoaded(width=1920, height=700),
    ],
)
def test_file_gates_leave_session_idle(event):
    session, _, _, _ = make_session()
    session.handle(event)
    assert not session.running
    assert session.engine.state is None


def test_disabled_config_never_starts():
    session, _, _, _ = make_session(enabled=False)
    session.handle(LOADED)
    assert not session.running

    session, _, _, _ = make_session(mode="disabled")
    session.handle(LOADED)
    assert not session.running


def test_detector_unavailable_cleans_up_session():
    session, detector, filters, _ = make_session(TraceDetector(available=False))

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _spin()
        await scheduler.wait_idle()
        return scheduler

    scheduler = asyncio.run(scenario())
    assert scheduler.closed
    assert not session.running
    assert session.engine.state is None
    assert filters.calls == []


def test_end_of_file_removes_crop_and_resets():
    session, detector, filters, _ = make_session(TraceDetector([SCOPE, SCOPE]))

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _until(lambda: bool(filters.applied))
        session.handle(EndOfFile())
        await scheduler.wait_idle()

    asyncio.run(scenario())
    assert filters.calls[-1] == ("remove", None)
    assert not filters.has_active_crop()
    assert not detector.active
    assert session.engine.state is None


def test_unknown_event_is_rejected():
    session, _, _, _ = make_session()
    with pytest.raises(TypeError):
        session.handle("seek")


def test_pause_during_single_start_cycle_retries_after_unpause():
    session, detector, filters, _ = make_session(
        TraceDetector([SCOPE, SCOPE, SCOPE]), mode="single", detect_window_seconds=0.05
    )

    async def scenario():
        session.handle(LOADED)
        scheduler = session.scheduler
        await _until(lambda: detector.active)
        session.handle(PauseChanged(paused=True))
        await scheduler.wait_idle()
        paused_activations = len(detector.activations)
        session.handle(PauseChanged(paused=False))
        await scheduler.wait_idle()
        return paused_activations

    assert asyncio.run(scenario()) == 1
    assert len(detector.activations) == 3
    assert filters.applied == [SCOPE]
