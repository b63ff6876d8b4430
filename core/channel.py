# core/channel.py

"""
The notification channel boundary and an in-memory implementation.

A channel delivers one `StatusChange` per status-row change. `on_subscribed` fires whenever the
channel becomes live, both on the first subscription and after every reconnection. Events
emitted while the channel is not live are lost, which is why a subscriber must resync on
`on_subscribed` rather than rely on buffered events.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol

from core.app_logger import get_logger
from models.status_record import StatusChange

logger = get_logger(__name__)

EventCallback = Callable[[StatusChange], None]
SubscribedCallback = Callable[[], None]


class NotificationChannel(Protocol):

    def subscribe(
        self,
        on_event: EventCallback,
        on_subscribed: SubscribedCallback | None = None,
    ) -> None: ...

    def unsubscribe(self) -> None: ...


class InMemoryChannel:
    """
    A single-subscriber channel fed by `InMemoryRecordStore.attach_channel()`.

    Notes:
        - Delivery is synchronous: `publish()` invokes the subscriber's callback on the caller's thread.
        - `disconnect()` / `reconnect()` simulate transport drops. Events published while
          disconnected are dropped and `on_subscribed` fires again on reconnection.
    """

    def __init__(self, name: str = "daily-status"):
        self._name = name
        self._lock = threading.Lock()
        self._on_event: EventCallback | None = None
        self._on_subscribed: SubscribedCallback | None = None
        self._connected = True
        self._dropped = 0

    # === properties ===

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_subscribed(self) -> bool:
        return self._on_event is not None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def dropped_events(self) -> int:
        return self._dropped

    # === subscription ===

    def subscribe(
        self,
        on_event: EventCallback,
        on_subscribed: SubscribedCallback | None = None,
    ) -> None:
        with self._lock:
            self._on_event = on_event
            self._on_subscribed = on_subscribed
            connected = self._connected

        logger.debug(f"Channel '{self._name}' subscribed.")

        if connected and on_subscribed is not None:
            on_subscribed()

    def unsubscribe(self) -> None:
        with self._lock:
            self._on_event = None
            self._on_subscribed = None

        logger.debug(f"Channel '{self._name}' unsubscribed.")

    # === delivery ===

    def publish(self, change: StatusChange) -> bool:
        """
        Delivers a change to the subscriber, if the channel is live.

        Returns:
            bool: True if the change was delivered, False if it was lost.
        """
        with self._lock:
            on_event = self._on_event if self._connected else None

        if on_event is None:
            self._dropped += 1
            return False

        on_event(change)
        return True

    def disconnect(self) -> None:
        with self._lock:
            self._connected = False

        logger.info(f"Channel '{self._name}' disconnected.")

    def reconnect(self) -> None:
        with self._lock:
            self._connected = True
            on_subscribed = self._on_subscribed if self._on_event else None

        logger.info(f"Channel '{self._name}' reconnected.")

        if on_subscribed is not None:
            on_subscribed()
