from __future__ import annotations

import json
import logging
from typing import Callable, Optional, Protocol

from app.schemas import Preferences
from models.errors import StorageError
from services.state_channel import StateChannel
from storage.local_storage import LocalStorage, StorageEvent

logger = logging.getLogger(__name__)

ExternalChangeCallback = Callable[[Preferences], None]


class PreferencesStore(Protocol):
    """Persistence and change notification for one window's preferences."""

    def load(self) -> Optional[Preferences]:
        ...

    def save(self, preferences: Preferences) -> None:
        ...

    def on_external_change(self, callback: ExternalChangeCallback) -> Callable[[], None]:
        ...


def decode_preferences(raw: Optional[str]) -> Optional[Preferences]:
    """Turn a stored blob into preferences, or ``None`` when it is unusable."""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored preferences are not valid JSON", extra={"reason": "unparseable"})
        return None
    if not isinstance(payload, dict):
        logger.warning(
            "Stored preferences are not a JSON object",
            extra={"reason": type(payload).__name__},
        )
        return None
    return Preferences.from_stored(payload)


class LocalStoragePreferencesStore:
    """Keeps preferences as one JSON blob under a fixed key.

    ``save`` writes the blob and then publishes on the channel. Other windows
    learn about the change through the channel and, as a fallback, through
    storage events for the key. Neither path reports a window's own writes.
    """

    def __init__(
        self,
        storage: LocalStorage,
        channel: StateChannel,
        window_id: str,
        key: str,
    ) -> None:
        self.storage = storage
        self.channel = channel
        self.window_id = window_id
        self.key = key

    def load(self) -> Optional[Preferences]:
        try:
            raw = self.storage.get_item(self.key)
        except StorageError as exc:
            logger.warning(
                "Failed to load preferences: %s",
                exc,
                extra={"window_id": self.window_id, "storage_key": self.key},
            )
            return None
        return decode_preferences(raw)

    def save(self, preferences: Preferences) -> None:
        blob = json.dumps(preferences.to_blob())
        try:
            self.storage.set_item(self.key, blob, source=self.window_id)
        except StorageError as exc:
            logger.warning(
                "Failed to save preferences: %s",
                exc,
                extra={"window_id": self.window_id, "storage_key": self.key},
            )
        self.channel.publish(preferences, sender=self.window_id)

    def on_external_change(self, callback: ExternalChangeCallback) -> Callable[[], None]:
        def handle_message(preferences: Preferences, sender: str) -> None:
            if sender == self.window_id:
                return
            callback(preferences)

        def handle_storage_event(event: StorageEvent) -> None:
            if event.key != self.key or not event.new_value:
                return
            preferences = decode_preferences(event.new_value)
            if preferences is not None:
                callback(preferences)

        unsubscribe_channel = self.channel.subscribe(handle_message)
        unsubscribe_storage = self.storage.add_listener(handle_storage_event, window_id=self.window_id)

        def unsubscribe() -> None:
            unsubscribe_channel()
            unsubscribe_storage()

        return unsubscribe
