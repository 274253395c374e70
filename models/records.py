"""Domain models for transformer assets and their voltage history."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class HealthStatus(str, Enum):
    """Health values the dashboard knows about; records may carry others."""

    excellent = "Excellent"
    good = "Good"
    fair = "Fair"
    poor = "Poor"
    critical = "Critical"


@dataclass(frozen=True, slots=True)
class VoltageReading:
    """A single timestamped voltage sample as it appeared in the source."""

    timestamp: str
    voltage: str

    @property
    def instant(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def voltage_value(self) -> int:
        return parse_voltage(self.voltage)


@dataclass(frozen=True, slots=True)
class TransformerRecord:
    """One transformer asset. ``readings[0]`` is the latest reading."""

    asset_id: int
    name: str
    region: str
    health: str
    readings: tuple[VoltageReading, ...] = field(default_factory=tuple)

    @property
    def latest_reading(self) -> Optional[VoltageReading]:
        return self.readings[0] if self.readings else None

    def to_payload(self) -> dict:
        return {
            "assetId": self.asset_id,
            "name": self.name,
            "region": self.region,
            "health": self.health,
            "lastTenVoltageReadings": [
                {"timestamp": reading.timestamp, "voltage": reading.voltage}
                for reading in self.readings
            ],
        }


_LEADING_INTEGER = re.compile(r"[+-]?\d+")
_FRACTION = re.compile(r"(?<=:\d\d)\.(\d+)")


def _normalise_fraction(match: re.Match) -> str:
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits.
    return "." + (match.group(1) + "000000")[:6]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    candidate = _FRACTION.sub(_normalise_fraction, candidate, count=1)

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def parse_voltage(value: str) -> int:
    """Read the leading decimal integer of a voltage string.

    Anything after the digits is ignored, so ``"230.6"`` reads as 230 and
    ``"1e3"`` as 1. A string without leading digits is rejected.
    """
    match = _LEADING_INTEGER.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid voltage {value!r}")
    return int(match.group())
