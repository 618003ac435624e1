"""
Session matching.
Pairs inferred entries with exits and totals worked hours.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..config import settings
from .scan_inference import (
    DirectionStrategy,
    NormalizedScans,
    ScanEvent,
    merge_cross_plant,
    normalize_scans,
)
from .time_rules import ZERO_HOURS, hours_between, round_hours


@dataclass(frozen=True)
class Session:
    entry: datetime
    exit: datetime
    hours: Decimal


@dataclass(frozen=True)
class RejectedPairing:
    """Entry/exit pair discarded because the duration is outside the allowed bounds."""
    entry: datetime
    exit: datetime
    hours: Decimal


@dataclass(frozen=True)
class MatchResult:
    sessions: Tuple[Session, ...] = ()
    total_hours: Decimal = ZERO_HOURS
    unmatched_entries: Tuple[datetime, ...] = ()
    rejected: Tuple[RejectedPairing, ...] = ()


def match_sessions(
    entries: Sequence[datetime],
    exits: Sequence[datetime],
    min_hours: Optional[float] = None,
    max_hours: Optional[float] = None,
) -> MatchResult:
    """
    Pair entries with exits into work sessions.

    For each entry, exits at or before it are skipped as stale. The next exit
    pairs with the entry when the duration is within [min_hours, max_hours].
    Entries that cannot find a valid exit are left unmatched and contribute
    nothing to the total.

    Args:
        entries: Entry instants
        exits: Exit instants
        min_hours: Shortest accepted session (default from settings)
        max_hours: Longest accepted session (default from settings)

    Returns:
        MatchResult; total_hours is the rounded sum of the rounded session hours
    """
    lower = Decimal(str(settings.min_session_hours if min_hours is None else min_hours))
    upper = Decimal(str(settings.max_session_hours if max_hours is None else max_hours))

    ordered_entries = sorted(entries)
    ordered_exits = sorted(exits)

    sessions: List[Session] = []
    unmatched: List[datetime] = []
    rejected: List[RejectedPairing] = []
    exit_index = 0

    for entry in ordered_entries:
        while exit_index < len(ordered_exits) and ordered_exits[exit_index] <= entry:
            exit_index += 1
        if exit_index >= len(ordered_exits):
            unmatched.append(entry)
            continue

        exit_time = ordered_exits[exit_index]
        hours = hours_between(entry, exit_time)
        if lower <= hours <= upper:
            sessions.append(Session(entry=entry, exit=exit_time, hours=round_hours(hours)))
            exit_index += 1
        else:
            if hours > upper:
                rejected.append(RejectedPairing(entry=entry, exit=exit_time, hours=round_hours(hours)))
            unmatched.append(entry)

    total = round_hours(sum((s.hours for s in sessions), ZERO_HOURS))
    return MatchResult(
        sessions=tuple(sessions),
        total_hours=total,
        unmatched_entries=tuple(unmatched),
        rejected=tuple(rejected),
    )


@dataclass(frozen=True)
class DayScans:
    """Everything derived from one employee's raw scans on one logical day."""
    raw_count: int
    normalized: NormalizedScans
    match: MatchResult
    plants: FrozenSet[int] = field(default_factory=frozenset)


def reconcile_scans(
    scans: Iterable[ScanEvent],
    strategy: Optional[DirectionStrategy] = None,
    gap_minutes: Optional[int] = None,
) -> DayScans:
    """Merge cross-plant duplicates, normalize and match one employee-day of scans."""
    raw = list(scans)
    merged = merge_cross_plant(raw)
    normalized = normalize_scans(merged, gap_minutes=gap_minutes, strategy=strategy)
    match = match_sessions(normalized.entries, normalized.exits)
    plants = frozenset(s.source_plant_id for s in raw if s.source_plant_id is not None)
    return DayScans(raw_count=len(raw), normalized=normalized, match=match, plants=plants)
