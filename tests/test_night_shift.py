from datetime import date, time

from plantclock.services.night_shift import (
    build_night_shift_boundaries,
    logical_date,
    night_shift_boundary,
    remap_scan_date,
)
from plantclock.services.shift_resolver import ShiftSchedule

from conftest import dt

NIGHT = ShiftSchedule(name="Turno Nocturno", start_time=time(22, 0), end_time=time(6, 0))
DAY = ShiftSchedule(name="Turno Matutino", start_time=time(6, 0), end_time=time(15, 30))


def test_boundary_is_end_plus_grace():
    assert night_shift_boundary(NIGHT, grace_minutes=120) == time(8, 0)
    assert night_shift_boundary(NIGHT, grace_minutes=0) == time(6, 0)


def test_boundary_is_capped_at_shift_start():
    evening = ShiftSchedule(name="Tarde", start_time=time(14, 0), end_time=time(2, 0))
    assert night_shift_boundary(evening, grace_minutes=24 * 60) == time(14, 0)


def test_day_shift_has_no_boundary():
    assert night_shift_boundary(DAY) is None
    assert night_shift_boundary(None) is None
    assert build_night_shift_boundaries({"1": DAY, "2": NIGHT}, grace_minutes=0) == {"2": time(6, 0)}


def test_exit_after_midnight_belongs_to_previous_day():
    boundary = night_shift_boundary(NIGHT, grace_minutes=120)
    assert logical_date(dt("2025-03-04 06:05"), boundary) == date(2025, 3, 3)
    assert logical_date(dt("2025-03-03 23:50"), boundary) == date(2025, 3, 3)
    assert logical_date(dt("2025-03-04 21:55"), boundary) == date(2025, 3, 4)


def test_remap_is_idempotent():
    boundary = time(8, 0)
    instant = dt("2025-03-04 05:00")
    once = remap_scan_date(instant.date(), instant, boundary)
    twice = remap_scan_date(once, instant, boundary)
    assert once == twice == date(2025, 3, 3)


def test_no_boundary_keeps_calendar_date():
    assert logical_date(dt("2025-03-04 01:00"), None) == date(2025, 3, 4)
