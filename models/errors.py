"""Error taxonomy for ingestion and persistence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True, slots=True)
class RecordIssue:
    """A problem found in one element of an ingested payload."""

    index: Optional[int]
    reason: str

    def describe(self) -> str:
        if self.index is None:
            return self.reason
        return f"record {self.index}: {self.reason}"


class IngestionError(Exception):
    """Base class for failures that abort a data load."""


class ValidationError(IngestionError):
    """Parsed data does not have the transformer record shape."""

    def __init__(self, issues: Sequence[RecordIssue]) -> None:
        self.issues = tuple(issues)
        summary = "; ".join(issue.describe() for issue in self.issues[:5])
        if len(self.issues) > 5:
            summary += f"; and {len(self.issues) - 5} more"
        super().__init__(f"Invalid transformer data structure: {summary}")


class ParseError(IngestionError):
    """Raw content is not valid JSON text."""


class FetchError(IngestionError):
    """The bundled sample resource could not be read."""


class StorageError(Exception):
    """The local storage area could not be read or written."""
