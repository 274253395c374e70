"""Validation and loading of transformer record sets."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from models.errors import FetchError, ParseError, RecordIssue, ValidationError
from models.records import TransformerRecord, VoltageReading, parse_timestamp, parse_voltage
from settings import get_settings

logger = logging.getLogger(__name__)

READINGS_FIELD = "lastTenVoltageReadings"
# Older exports misspell the readings field; accept it everywhere.
LEGACY_READINGS_FIELD = "lastTenVoltgageReadings"
REQUIRED_TEXT_FIELDS = ("name", "region", "health")


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Failed to parse JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc


def _readings_field(item: dict) -> Optional[str]:
    for name in (READINGS_FIELD, LEGACY_READINGS_FIELD):
        if name in item:
            return name
    return None


def _validate_reading(index: int, position: int, raw: Any, issues: List[RecordIssue]) -> Optional[VoltageReading]:
    if not isinstance(raw, dict):
        issues.append(RecordIssue(index, f"reading {position} is not an object"))
        return None

    timestamp = raw.get("timestamp")
    voltage = raw.get("voltage")
    if not isinstance(timestamp, str) or not timestamp.strip():
        issues.append(RecordIssue(index, f"reading {position} is missing timestamp"))
        return None
    if isinstance(voltage, bool) or voltage is None or voltage == "":
        issues.append(RecordIssue(index, f"reading {position} is missing voltage"))
        return None
    if not isinstance(voltage, (str, int, float)):
        issues.append(RecordIssue(index, f"reading {position} has invalid voltage"))
        return None

    try:
        parse_timestamp(timestamp)
    except ValueError:
        issues.append(RecordIssue(index, f"reading {position} has invalid timestamp"))
        return None

    voltage_text = voltage if isinstance(voltage, str) else str(voltage)
    try:
        parse_voltage(voltage_text)
    except ValueError:
        issues.append(RecordIssue(index, f"reading {position} has invalid voltage"))
        return None

    return VoltageReading(timestamp=timestamp, voltage=voltage_text)


def _validate_record(index: int, item: Any, issues: List[RecordIssue]) -> Optional[TransformerRecord]:
    if not isinstance(item, dict):
        issues.append(RecordIssue(index, "record is not an object"))
        return None

    start = len(issues)
    asset_id = item.get("assetId")
    if isinstance(asset_id, bool) or not isinstance(asset_id, int):
        issues.append(RecordIssue(index, "missing or non-integer assetId"))

    for name in REQUIRED_TEXT_FIELDS:
        value = item.get(name)
        if not isinstance(value, str) or not value.strip():
            issues.append(RecordIssue(index, f"missing {name}"))

    field_name = _readings_field(item)
    raw_readings = item.get(field_name) if field_name else None
    readings: List[VoltageReading] = []
    if not isinstance(raw_readings, list):
        issues.append(RecordIssue(index, f"missing {READINGS_FIELD} array"))
    else:
        for position, raw in enumerate(raw_readings):
            reading = _validate_reading(index, position, raw, issues)
            if reading is not None:
                readings.append(reading)

    if len(issues) > start:
        return None

    return TransformerRecord(
        asset_id=asset_id,
        name=item["name"],
        region=item["region"],
        health=item["health"],
        readings=tuple(readings),
    )


def validate_records(payload: Any) -> List[TransformerRecord]:
    """Check the shape of parsed JSON and build immutable records from it.

    Every problem is collected before failing so the user can fix a file in
    one pass. Both the bundled sample and user uploads go through here.
    """
    if not isinstance(payload, list):
        raise ValidationError([RecordIssue(None, "data must be an array of transformers")])

    issues: List[RecordIssue] = []
    records: List[TransformerRecord] = []
    seen_ids: set[int] = set()
    for index, item in enumerate(payload):
        record = _validate_record(index, item, issues)
        if record is None:
            continue
        if record.asset_id in seen_ids:
            issues.append(RecordIssue(index, f"duplicate assetId {record.asset_id}"))
            continue
        seen_ids.add(record.asset_id)
        records.append(record)

    if issues:
        raise ValidationError(issues)
    return records


class IngestionService:
    """Entry points for the bundled sample and for uploaded files."""

    def __init__(self, sample_path: Path) -> None:
        self.sample_path = sample_path

    def fetch_sample(self) -> List[TransformerRecord]:
        try:
            text = self.sample_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchError(f"Failed to load sample data from {self.sample_path.name}") from exc
        records = validate_records(parse_json(text))
        logger.info(
            "Sample data loaded",
            extra={"data_source": "sample", "record_count": len(records)},
        )
        return records

    def parse_upload(self, filename: str, content: Union[bytes, str]) -> List[TransformerRecord]:
        if not filename.lower().endswith(".json"):
            raise ParseError("Please select a JSON file")

        if isinstance(content, bytes):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ParseError("Failed to read file: not UTF-8 text") from exc
        else:
            text = content

        if not text.strip():
            raise ParseError("Uploaded file is empty.")

        records = validate_records(parse_json(text))
        logger.info(
            "Uploaded data loaded",
            extra={"data_source": "uploaded", "record_count": len(records), "upload_name": filename},
        )
        return records


def records_to_payload(records: Sequence[TransformerRecord]) -> List[dict]:
    return [record.to_payload() for record in records]


@lru_cache
def build_default_ingestion(sample_path: Optional[str] = None) -> IngestionService:
    settings = get_settings()
    path = Path(sample_path or settings.sample_data_path)
    return IngestionService(sample_path=path)
