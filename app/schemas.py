"""Pydantic schemas for persisted preferences and the HTTP API layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError


class DataSource(str, Enum):
    """Where the currently loaded record set came from."""

    sample = "sample"
    uploaded = "uploaded"


class IngestionStatus(str, Enum):
    """Data load lifecycle states exposed to the UI."""

    idle = "idle"
    loading = "loading"
    success = "success"
    error = "error"


def _dedupe(values: List[int]) -> List[int]:
    seen: set[int] = set()
    ordered: List[int] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class Preferences(BaseModel):
    """UI selection and filter state shared by every window of one origin.

    Serialized with camelCase keys, which is also the persisted blob shape.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    selected_transformers: List[int] = Field(
        default_factory=list, alias="selectedTransformers"
    )
    search_term: str = Field(default="", alias="searchTerm")
    region_filter: str = Field(default="", alias="regionFilter")
    health_filter: str = Field(default="", alias="healthFilter")
    data_source: DataSource = Field(default=DataSource.sample, alias="dataSource")

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_when_lenient(cls, value: Any, handler, info: ValidationInfo) -> Any:
        try:
            return handler(value)
        except PydanticValidationError:
            if not (info.context or {}).get("lenient"):
                raise
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)

    @field_validator("selected_transformers")
    @classmethod
    def _unique_selection(cls, value: List[int]) -> List[int]:
        return _dedupe(value)

    @classmethod
    def from_stored(cls, payload: Dict[str, Any]) -> "Preferences":
        """Build preferences from a stored blob, defaulting any unusable field."""
        return cls.model_validate(payload, context={"lenient": True})

    def to_blob(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PreferencesUpdate(BaseModel):
    """Partial preferences; only the fields that were set get merged."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    selected_transformers: Optional[List[int]] = Field(
        default=None, alias="selectedTransformers"
    )
    search_term: Optional[str] = Field(default=None, alias="searchTerm")
    region_filter: Optional[str] = Field(default=None, alias="regionFilter")
    health_filter: Optional[str] = Field(default=None, alias="healthFilter")
    data_source: Optional[DataSource] = Field(default=None, alias="dataSource")

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # Omit a field to leave it alone; null is not a preference value.
        if value is None:
            raise ValueError("must not be null")
        return value

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class IngestionState(BaseModel):
    """Status line shown next to the data source selector."""

    status: IngestionStatus = IngestionStatus.idle
    message: str = ""
    record_count: int = Field(default=0, ge=0)


class WindowStateResponse(BaseModel):
    window_id: str
    ready: bool
    preferences: Preferences
    ingestion: IngestionState


class SelectionChange(BaseModel):
    """Toggle one transformer, or every transformer when ``asset_id`` is omitted."""

    model_config = ConfigDict(populate_by_name=True)

    asset_id: Optional[int] = Field(default=None, alias="assetId")
    checked: bool = True


class TableRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset_id: int = Field(..., alias="assetId")
    name: str
    region: str
    health: str


class TableViewResponse(BaseModel):
    """Filtered table rows plus the facets used to populate the filter menus."""

    model_config = ConfigDict(populate_by_name=True)

    rows: List[TableRow] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    health_statuses: List[str] = Field(default_factory=list, alias="healthStatuses")
    shown: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class ChartSeriesInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset_id: int = Field(..., alias="assetId")
    name: str
    colour: str
    selected: bool


class ChartResponse(BaseModel):
    """Merged time/voltage matrix; ``None`` marks a missing reading."""

    model_config = ConfigDict(populate_by_name=True)

    points: List[Dict[str, Optional[int | str]]] = Field(default_factory=list)
    series: List[ChartSeriesInfo] = Field(default_factory=list)
    all_selected: bool = Field(default=False, alias="allSelected")
    some_selected: bool = Field(default=False, alias="someSelected")


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(..., ge=0)
    critical: int = Field(..., ge=0)
    regions: int = Field(..., ge=0)
    avg_voltage: int = Field(..., alias="avgVoltage")
