"""Unit tests for the derived table, chart and summary views."""

from __future__ import annotations

from app.schemas import Preferences
from models.records import TransformerRecord, VoltageReading
from services.views import (
    chart_series,
    eligible_transformers,
    filter_facets,
    filter_records,
    summary_stats,
    table_view,
)


def _record(
    asset_id: int,
    name: str,
    region: str,
    health: str,
    readings: list[tuple[str, str]] | None = None,
) -> TransformerRecord:
    return TransformerRecord(
        asset_id=asset_id,
        name=name,
        region=region,
        health=health,
        readings=tuple(VoltageReading(timestamp=ts, voltage=v) for ts, v in (readings or [])),
    )


def _scenario_records() -> list[TransformerRecord]:
    return [
        _record(1, "A", "North", "Critical", [("2024-01-02T00:00:00Z", "100")]),
        _record(2, "B", "South", "Good", [("2024-01-01T00:00:00Z", "200")]),
    ]


def _fleet() -> list[TransformerRecord]:
    return [
        _record(1, "Northgate Substation", "North", "Good"),
        _record(2, "Riverside", "South", "Critical"),
        _record(3, "Hilltop", "East", "Fair"),
        _record(4, "Old Mill", "North", "Poor"),
        _record(5, "Harbour", "West", "critical"),
    ]


def test_scenario_summary_table_and_chart() -> None:
    records = _scenario_records()

    stats = summary_stats(records)
    assert (stats.total, stats.critical, stats.regions, stats.avg_voltage) == (2, 1, 2, 150)

    view = table_view(records, Preferences(region_filter="North"))
    assert [record.asset_id for record in view.rows] == [1]
    assert view.total == 2
    assert view.shown == 1

    series = chart_series(records)
    assert [point["fullTimestamp"] for point in series.points] == [
        "2024-01-01T00:00:00Z",
        "2024-01-02T00:00:00Z",
    ]
    assert series.points[0] == {
        "timestamp": "1 Jan",
        "fullTimestamp": "2024-01-01T00:00:00Z",
        "A": None,
        "B": 200,
    }
    assert series.points[1]["A"] == 100
    assert series.points[1]["B"] is None


def test_facets_are_sorted_and_distinct() -> None:
    facets = filter_facets(_fleet())

    assert facets.regions == ["East", "North", "South", "West"]
    assert facets.health_statuses == ["Critical", "Fair", "Good", "Poor", "critical"]


def test_search_is_case_insensitive_across_name_region_and_health() -> None:
    records = _fleet()

    assert [r.asset_id for r in filter_records(records, search_term="RIVER")] == [2]
    assert [r.asset_id for r in filter_records(records, search_term="north")] == [1, 4]
    assert [r.asset_id for r in filter_records(records, search_term="critical")] == [2, 5]


def test_exact_filters_combine_with_search() -> None:
    records = _fleet()

    assert [r.asset_id for r in filter_records(records, region_filter="North", health_filter="Poor")] == [4]
    assert filter_records(records, region_filter="north") == []
    assert [r.asset_id for r in filter_records(records, search_term="mill", region_filter="North")] == [4]
    assert filter_records(records, search_term="mill", region_filter="South") == []


def test_empty_filters_return_every_record_in_input_order() -> None:
    records = _fleet()

    assert filter_records(records) == records
    assert filter_records(list(reversed(records))) == list(reversed(records))


def test_filtering_is_idempotent_and_a_subset() -> None:
    records = _fleet()
    criteria = {"search_term": "o", "region_filter": "North", "health_filter": ""}

    once = filter_records(records, **criteria)
    twice = filter_records(once, **criteria)

    assert once == twice
    assert {r.asset_id for r in once} <= {r.asset_id for r in records}


def test_chart_orders_by_instant_across_offsets() -> None:
    records = [
        _record(
            1,
            "A",
            "North",
            "Good",
            [
                ("2024-03-01T12:00:00+02:00", "10"),
                ("2024-03-01T09:00:00Z", "20"),
                ("2024-02-28T23:00:00-05:00", "30"),
            ],
        ),
        _record(2, "B", "South", "Good", [("2024-03-01T10:00:00Z", "40")]),
    ]

    series = chart_series(records)

    assert [point["fullTimestamp"] for point in series.points] == [
        "2024-02-28T23:00:00-05:00",
        "2024-03-01T09:00:00Z",
        "2024-03-01T12:00:00+02:00",
    ]
    assert series.values_for("A") == [30, 20, 10]
    # 12:00+02:00 and 10:00Z are the same instant
    assert series.values_for("B") == [None, None, 40]


def test_chart_timestamps_are_strictly_ascending() -> None:
    records = [
        _record(1, "A", "North", "Good", [("2024-01-05T00:00:00Z", "1"), ("2024-01-01", "2")]),
        _record(2, "B", "North", "Good", [("2024-01-03T00:00:00+00:00", "3"), ("2024-01-01T00:00:00Z", "4")]),
    ]

    series = chart_series(records)

    labels = [point["timestamp"] for point in series.points]
    assert labels == ["1 Jan", "3 Jan", "5 Jan"]
    assert series.values_for("A") == [2, None, 1]
    assert series.values_for("B") == [4, 3, None]


def test_deselecting_changes_eligibility_not_series() -> None:
    records = _scenario_records()
    before = chart_series(records)

    all_ids = [record.asset_id for record in records]
    assert [r.asset_id for r in eligible_transformers(records, all_ids)] == [1, 2]

    remaining = [asset_id for asset_id in all_ids if asset_id != 1]
    assert [r.asset_id for r in eligible_transformers(records, remaining)] == [2]
    assert chart_series(records).values_for("B") == before.values_for("B")


def test_chart_copies_are_independent() -> None:
    records = tuple(_scenario_records())

    first = chart_series(records)
    first.points[0]["B"] = 999

    assert chart_series(records).points[0]["B"] == 200


def test_summary_keeps_total_count_as_denominator() -> None:
    records = [
        _record(1, "A", "North", "Good", [("2024-01-02T00:00:00Z", "301"), ("2024-01-01T00:00:00Z", "1")]),
        _record(2, "B", "North", "critical"),
    ]

    stats = summary_stats(records)

    assert stats.avg_voltage == 151
    assert stats.critical == 0
    assert stats.regions == 1


def test_summary_of_empty_set_is_zero() -> None:
    stats = summary_stats([])

    assert (stats.total, stats.critical, stats.regions, stats.avg_voltage) == (0, 0, 0, 0)
