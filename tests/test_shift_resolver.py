from datetime import time

from plantclock.services.shift_resolver import (
    ScheduleSource,
    ShiftSchedule,
    is_more_specific,
    parse_workdays,
    resolve_shift,
)


def synced(name, start, end=time(15, 30), plant=1):
    return ShiftSchedule(name=name, start_time=start, end_time=end, source=ScheduleSource.synced, source_plant_id=plant)


MANUAL = ShiftSchedule(
    name="Ajuste RH", start_time=time(9, 0), end_time=time(18, 0), source=ScheduleSource.manual
)


def test_manual_override_wins_in_any_position():
    rows = [synced("Producción", time(6, 0)), synced("Oficina", time(8, 0), plant=2)]
    assert resolve_shift(rows + [MANUAL]) is MANUAL
    assert resolve_shift([MANUAL] + rows) is MANUAL


def test_specific_schedule_wins_regardless_of_load_order():
    production = synced("Producción", time(6, 0))
    office = synced("Oficina", time(8, 0), plant=2)
    assert resolve_shift([production, office]).name == "Oficina"
    assert resolve_shift([office, production]).name == "Oficina"


def test_name_marker_makes_default_start_specific():
    driver = synced("Chofer reparto", time(6, 0))
    generic = synced("Turno Matutino", time(6, 0), plant=2)
    assert resolve_shift([driver, generic]) is driver


def test_newest_synced_row_when_none_is_specific():
    older = synced("Turno A", time(6, 0))
    newer = synced("Turno B", time(6, 0), plant=2)
    assert resolve_shift([older, newer]) is newer


def test_single_synced_row_is_used_even_if_generic():
    only = synced("Turno Matutino", time(6, 0))
    assert resolve_shift([only]) is only


def test_no_candidates_gives_default_schedule():
    schedule = resolve_shift([])
    assert schedule.source == ScheduleSource.default
    assert schedule.start_time == time(6, 0)
    assert schedule.end_time == time(15, 30)
    assert schedule.tolerance_minutes == 0
    assert schedule.workdays == frozenset({1, 2, 3, 4, 5})


def test_is_more_specific():
    assert is_more_specific(synced("X", time(7, 0)))
    assert is_more_specific(synced("OFICINA central", time(6, 0)))
    assert not is_more_specific(synced("Producción", time(6, 0)))


def test_parse_workdays():
    assert parse_workdays("[0, 6]") == frozenset({0, 6})
    assert parse_workdays([1, 3]) == frozenset({1, 3})
    assert parse_workdays("garbage") == frozenset({1, 2, 3, 4, 5})
    assert parse_workdays("[]") == frozenset({1, 2, 3, 4, 5})
    assert parse_workdays("[1, 9]") == frozenset({1, 2, 3, 4, 5})
    assert parse_workdays(None) == frozenset({1, 2, 3, 4, 5})


def test_crosses_midnight():
    assert synced("Noche", time(22, 0), time(6, 0)).crosses_midnight
    assert not synced("Día", time(6, 0)).crosses_midnight
