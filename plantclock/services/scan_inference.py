"""
Scan normalization.

Badge readers at the plants do not report direction reliably, so entry/exit
is inferred from timing: scans are sorted, double taps inside the dedup gap
are dropped, and the survivors alternate Entry, Exit, Entry, ...

The alternation is only a heuristic. It lives behind DirectionStrategy so a
reader that reports true direction can be plugged in without touching
session matching or day classification.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from ..config import settings

logger = structlog.get_logger(__name__)

_EPOCH = datetime(1970, 1, 1)

ENTRY_VALUES = frozenset({"in", "entry", "entrada", "e", "1", "checkin", "check_in"})
EXIT_VALUES = frozenset({"out", "exit", "salida", "s", "0", "checkout", "check_out"})


@dataclass(frozen=True)
class ScanEvent:
    employee_id: str
    instant: datetime  # Naive local time
    source_plant_id: Optional[int] = None
    direction: Optional[str] = None  # As reported by the device, if at all


@dataclass(frozen=True)
class NormalizedScans:
    deduped: Tuple[ScanEvent, ...] = ()
    entries: Tuple[datetime, ...] = ()
    exits: Tuple[datetime, ...] = ()
    removed_count: int = 0

    @property
    def has_open_entry(self) -> bool:
        """True when the last inferred event is an entry with no exit after it."""
        if not self.entries:
            return False
        return not self.exits or self.entries[-1] > self.exits[-1]


class DirectionStrategy:
    """Assigns entry/exit roles to a deduplicated, chronologically sorted scan sequence."""

    name = "base"

    def assign(self, deduped: Sequence[ScanEvent]) -> Tuple[List[datetime], List[datetime]]:
        raise NotImplementedError


class AlternatingDirection(DirectionStrategy):
    """Even positions are entries, odd positions are exits."""

    name = "alternating"

    def assign(self, deduped: Sequence[ScanEvent]) -> Tuple[List[datetime], List[datetime]]:
        entries: List[datetime] = []
        exits: List[datetime] = []
        for index, scan in enumerate(deduped):
            if index % 2 == 0:
                entries.append(scan.instant)
            else:
                exits.append(scan.instant)
        return entries, exits


class ReportedDirection(DirectionStrategy):
    """
    Trusts the direction reported by the device.
    Scans without a recognizable direction fall back to their parity position.
    """

    name = "reported"

    def assign(self, deduped: Sequence[ScanEvent]) -> Tuple[List[datetime], List[datetime]]:
        entries: List[datetime] = []
        exits: List[datetime] = []
        for index, scan in enumerate(deduped):
            direction = normalize_direction(scan.direction)
            if direction is None:
                direction = "in" if index % 2 == 0 else "out"
            if direction == "in":
                entries.append(scan.instant)
            else:
                exits.append(scan.instant)
        return entries, exits


_STRATEGIES = {
    AlternatingDirection.name: AlternatingDirection,
    ReportedDirection.name: ReportedDirection,
}


def normalize_direction(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ENTRY_VALUES:
        return "in"
    if text in EXIT_VALUES:
        return "out"
    return None


def get_direction_strategy(name: Optional[str] = None) -> DirectionStrategy:
    """
    Look up a strategy by name (default from settings).
    Unknown names fall back to the alternating heuristic.
    """
    name = (name or settings.direction_strategy or AlternatingDirection.name).lower()
    strategy_cls = _STRATEGIES.get(name)
    if strategy_cls is None:
        logger.warning("unknown_direction_strategy", strategy=name, fallback=AlternatingDirection.name)
        strategy_cls = AlternatingDirection
    return strategy_cls()


def _bucket(instant: datetime, resolution_seconds: int) -> int:
    seconds = (instant - _EPOCH) // timedelta(seconds=1)
    return seconds - (seconds % resolution_seconds)


def merge_cross_plant(
    scans: Iterable[ScanEvent],
    resolution_seconds: Optional[int] = None,
) -> List[ScanEvent]:
    """
    Collapse the same badge punch seen by overlapping devices at different plants.

    Two scans are the same punch when employee and instant (rounded down to
    resolution_seconds) match. The first one seen is kept.

    Args:
        scans: Raw scans, any order
        resolution_seconds: Rounding resolution (default from settings)

    Returns:
        Scans with cross-plant duplicates removed, input order preserved
    """
    if resolution_seconds is None:
        resolution_seconds = settings.scan_merge_resolution_seconds
    resolution_seconds = max(1, int(resolution_seconds))

    seen = set()
    merged: List[ScanEvent] = []
    for scan in scans:
        key = (scan.employee_id, _bucket(scan.instant, resolution_seconds))
        if key in seen:
            continue
        seen.add(key)
        merged.append(scan)
    return merged


def normalize_scans(
    scans: Iterable[ScanEvent],
    gap_minutes: Optional[int] = None,
    strategy: Optional[DirectionStrategy] = None,
) -> NormalizedScans:
    """
    Sort, deduplicate and assign entry/exit roles to one employee's scans for one logical day.

    Args:
        scans: Scans for one employee already narrowed to one logical day
        gap_minutes: Dedup window; a scan closer than this to the last kept scan is dropped
        strategy: Direction strategy (default from settings)

    Returns:
        NormalizedScans with deduped events, entry and exit instants
    """
    if gap_minutes is None:
        gap_minutes = settings.dedup_gap_minutes
    if strategy is None:
        strategy = get_direction_strategy()
    gap = timedelta(minutes=gap_minutes)

    ordered = sorted(scans, key=lambda s: s.instant)
    deduped: List[ScanEvent] = []
    for scan in ordered:
        if not deduped or scan.instant - deduped[-1].instant >= gap:
            deduped.append(scan)

    entries, exits = strategy.assign(deduped)
    return NormalizedScans(
        deduped=tuple(deduped),
        entries=tuple(entries),
        exits=tuple(exits),
        removed_count=len(ordered) - len(deduped),
    )
