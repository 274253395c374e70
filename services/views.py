"""Derived views: table rows, chart series and summary statistics.

Everything here is a pure function of the loaded records and the current
preferences, so callers may recompute on every preference change.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.schemas import Preferences
from models.records import HealthStatus, TransformerRecord

COLOURS = (
    "#8884d8",
    "#82ca9d",
    "#ffc658",
    "#ff7300",
    "#00ff00",
    "#ff00ff",
    "#00ffff",
    "#ff0000",
)

ChartPoint = Dict[str, Optional[int | str]]


@dataclass
class FilterFacets:
    regions: List[str] = field(default_factory=list)
    health_statuses: List[str] = field(default_factory=list)


@dataclass
class TableView:
    """Rows matching the current filters, plus the facets for the filter menus."""

    rows: List[TransformerRecord] = field(default_factory=list)
    facets: FilterFacets = field(default_factory=FilterFacets)
    total: int = 0

    @property
    def shown(self) -> int:
        return len(self.rows)


@dataclass
class ChartSeries:
    """One point per distinct instant, keyed by transformer name."""

    points: List[ChartPoint] = field(default_factory=list)
    names: List[str] = field(default_factory=list)

    def values_for(self, name: str) -> List[Optional[int]]:
        return [point.get(name) for point in self.points]  # type: ignore[misc]


@dataclass
class SummaryStats:
    total: int = 0
    critical: int = 0
    regions: int = 0
    avg_voltage: int = 0


def _as_tuple(records: Iterable[TransformerRecord]) -> Tuple[TransformerRecord, ...]:
    return records if isinstance(records, tuple) else tuple(records)


@lru_cache(maxsize=32)
def _facets(records: Tuple[TransformerRecord, ...]) -> FilterFacets:
    return FilterFacets(
        regions=sorted({record.region for record in records}),
        health_statuses=sorted({record.health for record in records}),
    )


def filter_facets(records: Iterable[TransformerRecord]) -> FilterFacets:
    facets = _facets(_as_tuple(records))
    return FilterFacets(regions=list(facets.regions), health_statuses=list(facets.health_statuses))


def _matches_search(record: TransformerRecord, needle: str) -> bool:
    return (
        needle in record.name.lower()
        or needle in record.region.lower()
        or needle in record.health.lower()
    )


def filter_records(
    records: Iterable[TransformerRecord],
    search_term: str = "",
    region_filter: str = "",
    health_filter: str = "",
) -> List[TransformerRecord]:
    """Keep records matching the search term and both exact-match filters.

    Empty values place no constraint. Input order is preserved.
    """
    needle = search_term.lower()
    return [
        record
        for record in records
        if _matches_search(record, needle)
        and (not region_filter or record.region == region_filter)
        and (not health_filter or record.health == health_filter)
    ]


def table_view(records: Sequence[TransformerRecord], preferences: Preferences) -> TableView:
    rows = filter_records(
        records,
        search_term=preferences.search_term,
        region_filter=preferences.region_filter,
        health_filter=preferences.health_filter,
    )
    return TableView(rows=rows, facets=filter_facets(records), total=len(records))


def _short_label(instant: datetime) -> str:
    return f"{instant.day} {instant.strftime('%b')}"


@lru_cache(maxsize=32)
def _chart_series(records: Tuple[TransformerRecord, ...]) -> ChartSeries:
    first_seen: Dict[datetime, str] = {}
    per_record: List[Dict[datetime, int]] = []
    for record in records:
        values: Dict[datetime, int] = {}
        for reading in record.readings:
            instant = reading.instant
            first_seen.setdefault(instant, reading.timestamp)
            values.setdefault(instant, reading.voltage_value)
        per_record.append(values)

    points: List[ChartPoint] = []
    for instant in sorted(first_seen):
        point: ChartPoint = {
            "timestamp": _short_label(instant),
            "fullTimestamp": first_seen[instant],
        }
        for record, values in zip(records, per_record):
            point[record.name] = values.get(instant)
        points.append(point)

    return ChartSeries(points=points, names=[record.name for record in records])


def chart_series(records: Iterable[TransformerRecord]) -> ChartSeries:
    """Merge every record's readings into one time-ordered matrix.

    Timestamps are compared as instants, so the same moment written with two
    offsets is one row. Missing readings are ``None`` so charts can skip the
    gap instead of dropping to zero.
    """
    series = _chart_series(_as_tuple(records))
    return ChartSeries(points=[dict(point) for point in series.points], names=list(series.names))


def eligible_transformers(
    records: Iterable[TransformerRecord], selected: Iterable[int]
) -> List[TransformerRecord]:
    wanted = set(selected)
    return [record for record in records if record.asset_id in wanted]


def series_colour(position: int) -> str:
    return COLOURS[position % len(COLOURS)]


def summary_stats(records: Sequence[TransformerRecord]) -> SummaryStats:
    """Headline numbers for the stat cards.

    ``critical`` compares health case-sensitively, and the voltage average
    divides by every record even when some have no readings.
    """
    total = len(records)
    if not total:
        return SummaryStats()

    voltage_sum = sum(
        record.latest_reading.voltage_value
        for record in records
        if record.latest_reading is not None
    )
    return SummaryStats(
        total=total,
        critical=sum(1 for record in records if record.health == HealthStatus.critical.value),
        regions=len({record.region for record in records}),
        avg_voltage=math.floor(voltage_sum / total + 0.5),
    )
