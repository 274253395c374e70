"""In-process broadcast of preference changes between windows."""

from __future__ import annotations

import logging
from functools import lru_cache
from itertools import count
from threading import Lock
from typing import Callable, Dict

from app.schemas import Preferences

logger = logging.getLogger(__name__)

StateSubscriber = Callable[[Preferences, str], None]


class StateChannel:
    """Publishes the full preferences object to every subscriber.

    Subscribers receive ``(preferences, sender)`` and decide for themselves
    whether a message from their own window is relevant.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[int, StateSubscriber] = {}
        self._ids = count(1)
        self._lock = Lock()

    def subscribe(self, subscriber: StateSubscriber) -> Callable[[], None]:
        with self._lock:
            subscriber_id = next(self._ids)
            self._subscribers[subscriber_id] = subscriber

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(subscriber_id, None)

        return unsubscribe

    def publish(self, preferences: Preferences, sender: str) -> int:
        """Deliver a copy of ``preferences`` to each subscriber; return the count."""
        with self._lock:
            targets = list(self._subscribers.values())

        for subscriber in targets:
            try:
                subscriber(preferences.model_copy(deep=True), sender)
            except Exception:
                logger.exception("State subscriber failed", extra={"window_id": sender})
        return len(targets)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


@lru_cache
def build_default_channel() -> StateChannel:
    return StateChannel()
