"""Per-window dashboard sessions and the registry that hosts them."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from app.schemas import DataSource, IngestionState, IngestionStatus, Preferences
from datastore.preferences_store import LocalStoragePreferencesStore
from models.errors import IngestionError
from models.records import TransformerRecord
from services.app_state import AppState
from services.ingestion import IngestionService, build_default_ingestion
from services.state_channel import StateChannel, build_default_channel
from services.views import (
    ChartSeries,
    SummaryStats,
    TableView,
    chart_series,
    eligible_transformers,
    summary_stats,
    table_view,
)
from settings import get_settings
from storage.local_storage import LocalStorage, build_default_storage

logger = logging.getLogger(__name__)

ALL_FILTER_VALUE = "all"


class DashboardSession:
    """Everything one open window knows: preferences, records and load status.

    Each load attempt takes a new request token. Only the completion holding
    the latest token may replace the records, so a slow load that finishes
    after a newer one was started is dropped.
    """

    def __init__(self, window_id: str, app_state: AppState, ingestion: IngestionService) -> None:
        self.window_id = window_id
        self.app_state = app_state
        self.ingestion = ingestion
        self._records: Tuple[TransformerRecord, ...] = ()
        self._ingestion_state = IngestionState()
        self._token = 0
        self._lock = Lock()

    @property
    def records(self) -> Tuple[TransformerRecord, ...]:
        return self._records

    @property
    def preferences(self) -> Preferences:
        return self.app_state.state

    @property
    def ingestion_state(self) -> IngestionState:
        with self._lock:
            return self._ingestion_state.model_copy()

    @property
    def is_loading(self) -> bool:
        return self.ingestion_state.status is IngestionStatus.loading

    def start(self, autoload_sample: bool = True) -> Preferences:
        """Load stored preferences, then fetch the sample if it is the active source."""
        preferences = self.app_state.initialize()
        if autoload_sample and preferences.data_source is DataSource.sample and not self._records:
            self.load_sample()
        return self.preferences

    def begin_load(self, source: DataSource) -> int:
        with self._lock:
            self._token += 1
            token = self._token
            self._ingestion_state = IngestionState(status=IngestionStatus.loading)
        logger.debug(
            "Data load started",
            extra={"window_id": self.window_id, "data_source": source.value, "request_token": token},
        )
        return token

    def complete_load(
        self, token: int, source: DataSource, records: Sequence[TransformerRecord]
    ) -> bool:
        """Commit a finished load. Returns ``False`` when the load was superseded."""
        with self._lock:
            if token != self._token:
                self._log_stale(token, source)
                return False
            self._records = tuple(records)
            label = "sample data" if source is DataSource.sample else "uploaded data"
            self._ingestion_state = IngestionState(
                status=IngestionStatus.success,
                message=f"Data loaded successfully! Using {label}.",
                record_count=len(self._records),
            )

        self.app_state.update(
            {
                "selected_transformers": [record.asset_id for record in records],
                "data_source": source,
            }
        )
        logger.info(
            "Data load committed",
            extra={
                "window_id": self.window_id,
                "data_source": source.value,
                "record_count": len(records),
                "request_token": token,
                "status": IngestionStatus.success.value,
            },
        )
        return True

    def fail_load(self, token: int, source: DataSource, error: Exception) -> bool:
        with self._lock:
            if token != self._token:
                self._log_stale(token, source)
                return False
            self._ingestion_state = IngestionState(
                status=IngestionStatus.error,
                message=str(error),
                record_count=len(self._records),
            )
        logger.warning(
            "Data load failed: %s",
            error,
            extra={
                "window_id": self.window_id,
                "data_source": source.value,
                "request_token": token,
                "status": IngestionStatus.error.value,
                "issue_count": len(getattr(error, "issues", ())) or None,
            },
        )
        return True

    def load_sample(self) -> IngestionState:
        token = self.begin_load(DataSource.sample)
        try:
            records = self.ingestion.fetch_sample()
        except IngestionError as exc:
            self.fail_load(token, DataSource.sample, exc)
        else:
            self.complete_load(token, DataSource.sample, records)
        return self.ingestion_state

    def load_upload(self, filename: str, content: Union[bytes, str]) -> IngestionState:
        token = self.begin_load(DataSource.uploaded)
        try:
            records = self.ingestion.parse_upload(filename, content)
        except IngestionError as exc:
            self.fail_load(token, DataSource.uploaded, exc)
        else:
            self.complete_load(token, DataSource.uploaded, records)
        return self.ingestion_state

    def set_search(self, term: str) -> Preferences:
        return self.app_state.update({"search_term": term})

    def set_region_filter(self, value: str) -> Preferences:
        return self.app_state.update({"region_filter": "" if value == ALL_FILTER_VALUE else value})

    def set_health_filter(self, value: str) -> Preferences:
        return self.app_state.update({"health_filter": "" if value == ALL_FILTER_VALUE else value})

    def toggle_transformer(self, asset_id: int, checked: bool) -> Preferences:
        loaded = [record.asset_id for record in self._records]
        if asset_id not in loaded:
            raise KeyError(f"Transformer {asset_id} is not in the loaded data set.")
        selected = self.selected_ids()
        if checked and asset_id not in selected:
            selected.append(asset_id)
        elif not checked:
            selected = [value for value in selected if value != asset_id]
        return self.app_state.update({"selected_transformers": selected})

    def select_all(self, checked: bool) -> Preferences:
        selected = [record.asset_id for record in self._records] if checked else []
        return self.app_state.update({"selected_transformers": selected})

    def selected_ids(self) -> List[int]:
        """Selected ids that belong to the loaded records."""
        loaded = {record.asset_id for record in self._records}
        return [value for value in self.preferences.selected_transformers if value in loaded]

    def table(self) -> TableView:
        return table_view(self._records, self.preferences)

    def chart(self) -> ChartSeries:
        return chart_series(self._records)

    def eligible(self) -> List[TransformerRecord]:
        return eligible_transformers(self._records, self.preferences.selected_transformers)

    def summary(self) -> SummaryStats:
        return summary_stats(self._records)

    def close(self) -> None:
        self.app_state.close()

    def _log_stale(self, token: int, source: DataSource) -> None:
        logger.info(
            "Dropping superseded data load",
            extra={"window_id": self.window_id, "data_source": source.value, "request_token": token},
        )


class DashboardRegistry:
    """Windows of one origin: they share storage and the state channel."""

    def __init__(
        self,
        storage: LocalStorage,
        channel: StateChannel,
        ingestion: IngestionService,
        state_key: str,
    ) -> None:
        self.storage = storage
        self.channel = channel
        self.ingestion = ingestion
        self.state_key = state_key
        self._sessions: Dict[str, DashboardSession] = {}
        self._lock = Lock()

    def open_window(self, window_id: str, autoload_sample: bool = True) -> DashboardSession:
        with self._lock:
            session = self._sessions.get(window_id)
            if session is not None:
                return session
            store = LocalStoragePreferencesStore(
                storage=self.storage,
                channel=self.channel,
                window_id=window_id,
                key=self.state_key,
            )
            session = DashboardSession(
                window_id=window_id,
                app_state=AppState(store, window_id=window_id),
                ingestion=self.ingestion,
            )
            self._sessions[window_id] = session
        session.start(autoload_sample=autoload_sample)
        return session

    def get(self, window_id: str) -> DashboardSession:
        with self._lock:
            session = self._sessions.get(window_id)
        if session is None:
            raise KeyError(f"Window {window_id!r} is not open.")
        return session

    def close_window(self, window_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(window_id, None)
        if session is not None:
            session.close()

    def window_ids(self) -> Iterable[str]:
        with self._lock:
            return sorted(self._sessions)

    def shutdown(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()


@lru_cache
def build_default_registry(state_key: Optional[str] = None) -> DashboardRegistry:
    """Factory that wires windows to the default storage, channel and sample."""
    settings = get_settings()
    return DashboardRegistry(
        storage=build_default_storage(),
        channel=build_default_channel(),
        ingestion=build_default_ingestion(),
        state_key=state_key or settings.state_key,
    )
