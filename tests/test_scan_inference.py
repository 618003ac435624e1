from plantclock.services.scan_inference import (
    AlternatingDirection,
    ReportedDirection,
    get_direction_strategy,
    merge_cross_plant,
    normalize_direction,
    normalize_scans,
)

from conftest import dt, scan


def test_double_tap_inside_gap_is_dropped():
    result = normalize_scans(
        [scan("7", "2025-03-03 08:03"), scan("7", "2025-03-03 08:01"), scan("7", "2025-03-03 17:00")],
        gap_minutes=15,
        strategy=AlternatingDirection(),
    )
    assert [s.instant for s in result.deduped] == [dt("2025-03-03 08:01"), dt("2025-03-03 17:00")]
    assert result.entries == (dt("2025-03-03 08:01"),)
    assert result.exits == (dt("2025-03-03 17:00"),)
    assert result.removed_count == 1


def test_gap_is_measured_from_last_kept_scan():
    result = normalize_scans(
        [scan("7", "2025-03-03 06:00"), scan("7", "2025-03-03 06:10"), scan("7", "2025-03-03 06:20")],
        gap_minutes=15,
        strategy=AlternatingDirection(),
    )
    assert [s.instant.minute for s in result.deduped] == [0, 20]


def test_scan_exactly_at_gap_is_kept():
    result = normalize_scans(
        [scan("7", "2025-03-03 06:00"), scan("7", "2025-03-03 06:15")],
        gap_minutes=15,
        strategy=AlternatingDirection(),
    )
    assert len(result.deduped) == 2


def test_alternation_leaves_open_entry_on_odd_count():
    result = normalize_scans(
        [scan("7", "2025-03-03 06:00"), scan("7", "2025-03-03 12:00"), scan("7", "2025-03-03 13:00")],
        strategy=AlternatingDirection(),
    )
    assert len(result.entries) == 2
    assert len(result.exits) == 1
    assert len(result.deduped) == len(result.entries) + len(result.exits)
    assert result.has_open_entry


def test_empty_input():
    result = normalize_scans([], strategy=AlternatingDirection())
    assert result.deduped == ()
    assert not result.has_open_entry


def test_normalization_is_idempotent():
    scans = [
        scan("7", "2025-03-03 06:00"),
        scan("7", "2025-03-03 06:02"),
        scan("7", "2025-03-03 15:30"),
        scan("7", "2025-03-03 15:31"),
    ]
    first = normalize_scans(scans, strategy=AlternatingDirection())
    second = normalize_scans(first.deduped, strategy=AlternatingDirection())
    assert second.deduped == first.deduped
    assert second.entries == first.entries
    assert second.exits == first.exits
    assert second.removed_count == 0


def test_merge_cross_plant_keeps_first_seen_within_resolution():
    merged = merge_cross_plant(
        [
            scan("7", "2025-03-03 06:00", plant_id=1),
            scan("7", "2025-03-03 06:00", plant_id=2),
            scan("8", "2025-03-03 06:00", plant_id=2),
        ],
        resolution_seconds=60,
    )
    assert [(s.employee_id, s.source_plant_id) for s in merged] == [("7", 1), ("8", 2)]


def test_merge_cross_plant_distinct_minutes_survive():
    merged = merge_cross_plant(
        [scan("7", "2025-03-03 06:00"), scan("7", "2025-03-03 06:01", plant_id=2)],
        resolution_seconds=60,
    )
    assert len(merged) == 2


def test_reported_direction_uses_device_action():
    result = normalize_scans(
        [
            scan("7", "2025-03-03 06:00", direction="Entrada"),
            scan("7", "2025-03-03 09:00", direction="Entrada"),
            scan("7", "2025-03-03 15:00", direction="Salida"),
        ],
        strategy=ReportedDirection(),
    )
    assert len(result.entries) == 2
    assert result.exits == (dt("2025-03-03 15:00"),)


def test_normalize_direction_values():
    assert normalize_direction("ENTRY") == "in"
    assert normalize_direction(" salida ") == "out"
    assert normalize_direction("maybe") is None
    assert normalize_direction(None) is None


def test_unknown_strategy_falls_back_to_alternating():
    assert isinstance(get_direction_strategy("bogus"), AlternatingDirection)
    assert isinstance(get_direction_strategy("reported"), ReportedDirection)
