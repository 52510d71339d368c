"""Shape majority voting over every rectangle observed in the current session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from autocrop.types import Rectangle, RectKey, SampleShape

LOGGER = logging.getLogger("autocrop.tracking.majority")


@dataclass
class ObservationRecord:
    rect: Rectangle
    shape: SampleShape
    count: int = 0


class MajorityTracker:
    """Frequency table of distinct rectangles, keyed by their exact ``(w, h, x, y)``."""

    def __init__(self) -> None:
        self.records: Dict[RectKey, ObservationRecord] = {}

    def __len__(self) -> int:
        return len(self.records)

    def record(self, rect: Rectangle, shape: SampleShape) -> ObservationRecord:
        """Count one sighting of ``rect``; the shape is fixed by the first sighting."""
        record = self.records.get(rect.key)
        if record is None:
            record = ObservationRecord(rect=rect, shape=shape)
            self.records[rect.key] = record
        record.count += 1
        return record

    def totals(self) -> Tuple[int, int]:
        """Return ``(symmetric, other)`` observation totals."""
        symmetric = 0
        other = 0
        for record in self.records.values():
            if record.shape is SampleShape.SYMMETRIC:
                symmetric += record.count
            else:
                other += record.count
        return symmetric, other

    def dominant_is_symmetric(self) -> bool:
        symmetric, other = self.totals()
        return symmetric > other

    def reset(self) -> None:
        self.records.clear()

    def summary(self) -> List[str]:
        symmetric, other = self.totals()
        majority = SampleShape.SYMMETRIC if symmetric > other else SampleShape.IN_MARGIN
        lines = [f"Shape majority is {majority.value}, {symmetric} > {other}"]
        for key, record in self.records.items():
            lines.append(
                "w=%d:h=%d:x=%d:y=%d count=%d shape_y=%s" % (*key, record.count, record.shape.value)
            )
        return lines

    def log_summary(self) -> None:
        lines = self.summary()
        LOGGER.info(lines[0])
        for line in lines[1:]:
            LOGGER.debug(line)
