from decimal import Decimal

from plantclock.services.scan_inference import AlternatingDirection
from plantclock.services.sessions import match_sessions, reconcile_scans

from conftest import dt, scan


def test_single_session_hours():
    result = match_sessions([dt("2025-03-03 08:01")], [dt("2025-03-03 17:00")])
    assert len(result.sessions) == 1
    assert result.sessions[0].hours == Decimal("8.98")
    assert result.total_hours == Decimal("8.98")


def test_stale_exit_before_entry_is_skipped():
    result = match_sessions(
        [dt("2025-03-03 08:00")],
        [dt("2025-03-03 07:00"), dt("2025-03-03 17:00")],
    )
    assert [(s.entry, s.exit) for s in result.sessions] == [(dt("2025-03-03 08:00"), dt("2025-03-03 17:00"))]
    assert result.total_hours == Decimal("9.00")


def test_too_short_pairing_leaves_entry_unmatched():
    result = match_sessions([dt("2025-03-03 06:00")], [dt("2025-03-03 06:03")])
    assert result.sessions == ()
    assert result.unmatched_entries == (dt("2025-03-03 06:00"),)
    assert result.rejected == ()
    assert result.total_hours == Decimal("0.00")


def test_pairing_over_24_hours_is_rejected():
    result = match_sessions([dt("2025-03-03 06:00")], [dt("2025-03-04 07:00")])
    assert result.sessions == ()
    assert len(result.rejected) == 1
    assert result.rejected[0].hours == Decimal("25.00")


def test_total_is_sum_of_rounded_sessions():
    result = match_sessions(
        [dt("2025-03-03 06:00"), dt("2025-03-03 07:00")],
        [dt("2025-03-03 06:20"), dt("2025-03-03 07:20")],
    )
    assert [s.hours for s in result.sessions] == [Decimal("0.33"), Decimal("0.33")]
    assert result.total_hours == Decimal("0.66")


def test_sessions_respect_bounds():
    result = match_sessions(
        [dt("2025-03-03 06:00"), dt("2025-03-03 12:30")],
        [dt("2025-03-03 12:00"), dt("2025-03-03 15:30")],
    )
    for session in result.sessions:
        assert session.exit > session.entry
        assert Decimal("0.1") <= session.hours <= Decimal("24")
    assert result.total_hours == Decimal("9.00")


def test_reconcile_collects_plants_and_raw_count():
    day = reconcile_scans(
        [
            scan("7", "2025-03-03 06:00", plant_id=1),
            scan("7", "2025-03-03 06:00", plant_id=2),
            scan("7", "2025-03-03 15:30", plant_id=2),
        ],
        strategy=AlternatingDirection(),
    )
    assert day.raw_count == 3
    assert day.plants == frozenset({1, 2})
    assert day.match.total_hours == Decimal("9.50")
