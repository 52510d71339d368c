import json

import pandas as pd
import pytest

from autocrop.config import AutocropConfig
from autocrop.host.replay import load_trace, replay_trace
from autocrop.types import FrameSize
from scripts.replay_trace import main

TRACE = """w,h,x,y,event
1920,800,0,140,
1920,800,0,140,
,,,,seek
1920,1080,0,0,toggle
,,,,
"""


@pytest.fixture
def trace_path(tmp_path):
    path = tmp_path / "movie.csv"
    path.write_text(TRACE, encoding="utf-8")
    return path


def test_load_trace_normalizes_events(trace_path):
    trace = load_trace(trace_path)
    assert list(trace["event"]) == ["", "", "seek", "toggle", ""]


def test_load_trace_without_event_column(tmp_path):
    path = tmp_path / "plain.csv"
    path.write_text("w,h,x,y\n1920,800,0,140\n", encoding="utf-8")
    trace = load_trace(path)
    assert list(trace["event"]) == [""]


def test_load_trace_rejects_missing_columns(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text("w,h,x\n1920,800,0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="missing columns"):
        load_trace(path)


@pytest.mark.parametrize("event", ["rewind", "restart"])
def test_load_trace_rejects_unknown_events(tmp_path, event):
    path = tmp_path / "events.csv"
    path.write_text(f"w,h,x,y,event\n1920,800,0,140,{event}\n", encoding="utf-8")
    with pytest.raises(ValueError, match=event):
        load_trace(path)


def test_replay_trace_reports_each_decision(trace_path):
    decisions = replay_trace(load_trace(trace_path), FrameSize(1920, 1080), AutocropConfig())

    assert list(decisions["row"]) == [0, 1, 3, 4]
    assert list(decisions["result"]) == ["unchanged", "applied", "unchanged", "no_signal"]
    assert list(decisions["applied"]) == [
        "w=1920:h=1080:x=0:y=0",
        "w=1920:h=800:x=0:y=140",
        "w=1920:h=1080:x=0:y=0",
        "w=1920:h=1080:x=0:y=0",
    ]
    assert decisions.loc[2, "event"] == "toggle"
    assert decisions.loc[0, "x_in_margin"]
    assert pd.isna(decisions.loc[3, "shape"])


def test_cli_writes_csv_next_to_trace(trace_path):
    main([str(trace_path), "--width", "1920", "--height", "1080"])

    output = trace_path.with_name("movie-decisions.csv")
    decisions = pd.read_csv(output)
    assert len(decisions) == 4
    assert decisions.loc[1, "result"] == "applied"


def test_cli_writes_json_with_config(trace_path, tmp_path):
    config_path = tmp_path / "autocrop.yaml"
    config_path.write_text("autocrop:\n  height_pixel_margin: 8\n", encoding="utf-8")
    output = tmp_path / "out" / "decisions.json"

    main(
        [
            str(trace_path),
            "--width",
            "1920",
            "--height",
            "1080",
            "--config",
            str(config_path),
            "--json",
            "--output",
            str(output),
        ]
    )

    records = json.loads(output.read_text(encoding="utf-8"))
    assert [record["result"] for record in records] == ["unchanged", "applied", "unchanged", "no_signal"]
    assert records[1]["h"] == 800


def test_unpause_rows_are_evaluated_without_side_effects(tmp_path):
    path = tmp_path / "unpause.csv"
    path.write_text(
        "w,h,x,y,event\n1920,800,0,140,pause\n1920,800,0,140,unpause\n", encoding="utf-8"
    )
    decisions = replay_trace(load_trace(path), FrameSize(1920, 1080), AutocropConfig())
    assert list(decisions["event"]) == ["pause", "unpause"]
    assert list(decisions["result"]) == ["unchanged", "applied"]
