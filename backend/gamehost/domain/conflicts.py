from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Hashable, Iterable, Optional

from ..utils.time import overlap_minutes

CRITICAL_OVERLAP_MINUTES = 15


class ConflictSeverity(StrEnum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class IntervalBlock:
    id: str
    table_id: Optional[Hashable]
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ConflictRecord:
    table_id: Hashable
    block1_id: str
    block2_id: str
    overlap_minutes: int
    severity: ConflictSeverity


def classify_overlap(minutes: int) -> ConflictSeverity:
    return ConflictSeverity.CRITICAL if minutes >= CRITICAL_OVERLAP_MINUTES else ConflictSeverity.WARNING


def detect_conflicts(blocks: Iterable[IntervalBlock]) -> list[ConflictRecord]:
    """
    Pairwise overlap detection per table.

    Quadratic per table, which is fine for tens of bookings a day. Blocks
    without a table are skipped. Output is ordered by table (first seen) then
    by the sorted position of the pair.
    """
    by_table: dict[Hashable, list[IntervalBlock]] = defaultdict(list)
    for block in blocks:
        if block.table_id is None:
            continue
        by_table[block.table_id].append(block)

    conflicts: list[ConflictRecord] = []
    for table_id, table_blocks in by_table.items():
        if len(table_blocks) < 2:
            continue
        ordered = sorted(table_blocks, key=lambda b: b.start)
        for i, first in enumerate(ordered):
            for second in ordered[i + 1 :]:
                minutes = overlap_minutes(first.start, first.end, second.start, second.end)
                if minutes > 0:
                    conflicts.append(
                        ConflictRecord(
                            table_id=table_id,
                            block1_id=first.id,
                            block2_id=second.id,
                            overlap_minutes=minutes,
                            severity=classify_overlap(minutes),
                        )
                    )
    return conflicts
