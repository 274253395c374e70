from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from itertools import count
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Optional
from urllib.parse import quote

from models.errors import StorageError
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StorageEvent:
    """Change notification delivered to windows other than the writer."""

    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    source: Optional[str] = None


StorageListener = Callable[[StorageEvent], None]


class LocalStorage:
    """String key/value area shared by every window of one origin.

    With a ``root_path`` each key is mirrored to its own file so a later
    process sees what an earlier one saved.
    """

    def __init__(self, origin: str, root_path: Optional[Path] = None) -> None:
        self.origin = origin
        self.root_path = root_path
        self._items: Dict[str, str] = {}
        self._listeners: Dict[int, tuple[Optional[str], StorageListener]] = {}
        self._listener_ids = count(1)
        self._lock = Lock()
        if root_path:
            try:
                root_path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Cannot create storage directory {root_path}: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._items.get(key)
            if value is not None:
                return value

        if self.root_path:
            path = self._path_for(key)
            if not path.exists():
                return None
            try:
                value = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StorageError(f"Cannot read key {key!r} from {self.origin!r}: {exc}") from exc
            with self._lock:
                self._items[key] = value
            return value

        return None

    def set_item(self, key: str, value: str, source: Optional[str] = None) -> None:
        old_value = self.get_item(key)
        with self._lock:
            if self.root_path:
                try:
                    self._path_for(key).write_text(value, encoding="utf-8")
                except OSError as exc:
                    raise StorageError(
                        f"Cannot write key {key!r} to {self.origin!r}: {exc}"
                    ) from exc
            self._items[key] = value
        if old_value != value:
            self._dispatch(StorageEvent(key=key, old_value=old_value, new_value=value, source=source))

    def add_listener(self, listener: StorageListener, window_id: Optional[str] = None) -> Callable[[], None]:
        """Observe changes made by other windows. Returns an unsubscribe callable."""
        with self._lock:
            listener_id = next(self._listener_ids)
            self._listeners[listener_id] = (window_id, listener)

        def remove() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return remove

    def _dispatch(self, event: StorageEvent) -> None:
        with self._lock:
            targets = [
                listener
                for window_id, listener in self._listeners.values()
                if event.source is None or window_id != event.source
            ]
        for listener in targets:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Storage listener failed",
                    extra={"storage_key": event.key, "window_id": event.source},
                )

    def _path_for(self, key: str) -> Path:
        assert self.root_path is not None
        return self.root_path / quote(key, safe="")


@lru_cache
def build_default_storage(
    origin: str = "local",
    root_path: Optional[str] = None,
) -> LocalStorage:
    settings = get_settings()
    storage_root = settings.storage_root_path if root_path is None else root_path
    path = Path(storage_root) if storage_root else None
    return LocalStorage(origin=origin, root_path=path)
