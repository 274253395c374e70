"""Per-window preferences state synchronized through a preferences store."""

from __future__ import annotations

import logging
from itertools import count
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional, Union

from app.schemas import Preferences, PreferencesUpdate
from datastore.preferences_store import PreferencesStore

logger = logging.getLogger(__name__)

StateListener = Callable[[Preferences], None]


class AppState:
    """Holds one in-memory copy of the preferences for a single window.

    Consumers must wait for ``ready`` before rendering anything that depends
    on stored preferences. Local updates merge per field and are persisted
    immediately; changes from other windows replace the copy wholesale.
    """

    def __init__(self, store: PreferencesStore, window_id: str = "default") -> None:
        self.store = store
        self.window_id = window_id
        self._state = Preferences()
        self._ready = False
        self._lock = Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: Dict[int, StateListener] = {}
        self._listener_ids = count(1)

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def state(self) -> Preferences:
        with self._lock:
            return self._state.model_copy(deep=True)

    def initialize(self) -> Preferences:
        if self._ready:
            return self.state

        saved = self.store.load()
        if saved is not None:
            with self._lock:
                self._state = saved
        self._unsubscribe = self.store.on_external_change(self._replace)
        self._ready = True
        logger.debug("Preferences initialized", extra={"window_id": self.window_id})
        return self.state

    def update(self, changes: Union[PreferencesUpdate, Mapping[str, Any]]) -> Preferences:
        """Merge ``changes`` into the current preferences and persist the result."""
        if not isinstance(changes, PreferencesUpdate):
            changes = PreferencesUpdate.model_validate(dict(changes))

        with self._lock:
            merged = self._state.model_copy(update=changes.changes(), deep=True)
            merged = Preferences.model_validate(merged.model_dump())
            self._state = merged

        self.store.save(merged)
        self._notify(merged)
        return merged.model_copy(deep=True)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            listener_id = next(self._listener_ids)
            self._listeners[listener_id] = listener

        def remove() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return remove

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _replace(self, incoming: Preferences) -> None:
        with self._lock:
            self._state = incoming.model_copy(deep=True)
        logger.debug("Preferences replaced by another window", extra={"window_id": self.window_id})
        self._notify(incoming)

    def _notify(self, preferences: Preferences) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(preferences.model_copy(deep=True))
