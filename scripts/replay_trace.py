#!/usr/bin/env python3
"""CLI for replaying a recorded crop-detection trace through the decision engine."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from autocrop.config import AutocropConfig, load_config
from autocrop.host.replay import load_trace, replay_trace
from autocrop.io_utils import dump_json, ensure_dir, setup_logging
from autocrop.types import FrameSize


LOGGER = logging.getLogger("scripts.replay_trace")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a detection trace and report crop decisions")
    parser.add_argument("trace", type=Path, help="Trace CSV with w,h,x,y[,event] columns")
    parser.add_argument("--width", type=int, required=True, help="Original frame width")
    parser.add_argument("--height", type=int, required=True, help="Original frame height")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Autocrop configuration YAML (defaults to built-in options)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output path (defaults to <trace>-decisions.csv or .json)",
    )
    parser.add_argument("--json", action="store_true", help="Write decisions as JSON records")
    parser.add_argument("--verbose", action="store_true", help="Log every cycle")
    return parser.parse_args(argv)


def _default_output(trace_path: Path, as_json: bool) -> Path:
    suffix = ".json" if as_json else ".csv"
    return trace_path.with_name(f"{trace_path.stem}-decisions{suffix}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config) if args.config else AutocropConfig().validate()
    frame = FrameSize(args.width, args.height)
    trace = load_trace(args.trace)
    decisions = replay_trace(trace, frame, config)

    output_path = args.output or _default_output(args.trace, args.json)
    ensure_dir(output_path.parent)
    if args.json:
        dump_json(output_path, decisions.to_dict(orient="records"))
    else:
        decisions.to_csv(output_path, index=False)
    LOGGER.info("Wrote %d decisions to %s", len(decisions), output_path)


if __name__ == "__main__":
    main()
