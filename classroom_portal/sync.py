"""
Realtime list synchronizers.

Each synchronizer mirrors one remote collection: load() pulls the full window,
subscribe() keeps it current from change notifications. Messages are
fine-grained (fetch and append the one new record); announcements and the
schedule are coarse (any change reloads everything).

Notifications arrive on the Socket.IO client thread, so the mirror is swapped
under a lock; network calls never hold it.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .entities import DAYS, Announcement, Message, ScheduleItem, group_schedule
from .errors import PortalError

logger = logging.getLogger(__name__)

MESSAGE_WINDOW = 100


class ConnectionStatus(str, Enum):
    CONNECTING = 'CONNECTING'
    LIVE = 'LIVE'
    OFFLINE = 'OFFLINE'


@dataclass
class ChangeEvent:
    kind: str  # INSERT | UPDATE | DELETE
    record_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'ChangeEvent':
        return cls(kind=str(payload.get('event', '')).upper(), record_id=payload.get('id'))


class Subscription(ABC):
    @abstractmethod
    def close(self) -> None:
        """Stop delivering events. Must be safe to call more than once."""


class CollectionSource(ABC):
    """A remote collection as seen by a synchronizer."""

    name = ''

    @abstractmethod
    def fetch(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def fetch_one(self, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def subscribe(self, on_event: Callable[[ChangeEvent], None],
                  on_status: Callable[[ConnectionStatus], None]) -> Subscription:
        ...


_EPOCH = datetime.min


def _created_key(record):
    created = record.created_at
    if created is None:
        return _EPOCH
    return created.replace(tzinfo=None) if created.tzinfo else created


class RealtimeListSynchronizer:
    """
    Base synchronizer: ordered snapshot + connection status.

    Subclasses set record_factory and newest_first, and decide how a change
    notification is applied in _handle_event().
    """

    record_factory: Callable[[Dict[str, Any]], Any] = None
    newest_first = False

    def __init__(self, source: CollectionSource,
                 on_change: Optional[Callable[[List[Any]], None]] = None,
                 on_status: Optional[Callable[[ConnectionStatus], None]] = None):
        self.source = source
        self.on_change = on_change
        self.on_status = on_status
        self._lock = threading.Lock()
        self._items: List[Any] = []
        self._ids = set()
        self._status = ConnectionStatus.OFFLINE
        self._subscription: Optional[Subscription] = None

    @property
    def items(self) -> List[Any]:
        with self._lock:
            return list(self._items)

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_stale(self) -> bool:
        """True while notifications are not being delivered; the view should warn."""
        return self._status is not ConnectionStatus.LIVE

    # ------------------------------------------------------------
    # load / subscribe / unsubscribe
    # ------------------------------------------------------------
    def load(self) -> bool:
        try:
            raw = self.source.fetch()
        except PortalError as e:
            logger.error(f"Loading {self.source.name} failed: {e}")
            return False
        records = self._order([self.record_factory(r) for r in raw])
        with self._lock:
            self._items = records
            self._ids = {r.id for r in records}
        self._changed()
        return True

    def subscribe(self, on_change: Optional[Callable[[List[Any]], None]] = None) -> None:
        if on_change is not None:
            self.on_change = on_change
        if self._subscription is not None:
            return
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            self._subscription = self.source.subscribe(self._on_event, self._set_status)
        except PortalError as e:
            logger.error(f"Subscribing to {self.source.name} failed: {e}")
            self._set_status(ConnectionStatus.OFFLINE)

    def unsubscribe(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()
        self._set_status(ConnectionStatus.OFFLINE)

    def __enter__(self):
        self.load()
        self.subscribe()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()
        return False

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------
    def _order(self, records):
        return sorted(records, key=_created_key, reverse=self.newest_first)

    def _on_event(self, event: ChangeEvent) -> None:
        if self._subscription is None and self._status is ConnectionStatus.OFFLINE:
            return
        try:
            self._handle_event(event)
        except PortalError as e:
            logger.error(f"Applying {event.kind} on {self.source.name} failed: {e}")

    def _handle_event(self, event: ChangeEvent) -> None:
        self.load()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        logger.info(f"{self.source.name} realtime status: {status.value}")
        if self.on_status is not None:
            self.on_status(status)

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self.items)


class MessageSynchronizer(RealtimeListSynchronizer):
    """Chat: oldest first, last MESSAGE_WINDOW messages, incremental append."""

    record_factory = staticmethod(Message.from_dict)
    window = MESSAGE_WINDOW

    def _order(self, records):
        ordered = super()._order(records)
        return ordered[-self.window:]

    def _handle_event(self, event: ChangeEvent) -> None:
        if event.kind != 'INSERT' or not event.record_id:
            return
        with self._lock:
            if event.record_id in self._ids:
                return
        raw = self.source.fetch_one(event.record_id)
        if raw is None:
            return
        message = Message.from_dict(raw)
        with self._lock:
            if message.id in self._ids:
                return
            self._items.append(message)
            self._ids.add(message.id)
            if len(self._items) > self.window:
                for dropped in self._items[:-self.window]:
                    self._ids.discard(dropped.id)
                self._items = self._items[-self.window:]
        self._changed()


class AnnouncementSynchronizer(RealtimeListSynchronizer):
    record_factory = staticmethod(Announcement.from_dict)
    newest_first = True


class ScheduleSynchronizer(RealtimeListSynchronizer):
    record_factory = staticmethod(ScheduleItem.from_dict)

    def _order(self, records):
        return sorted(records, key=lambda item: (_day_index(item.day), item.time))

    def grouped(self) -> Dict[str, List[ScheduleItem]]:
        return group_schedule(self.items)


def _day_index(day):
    return DAYS.index(day) if day in DAYS else len(DAYS)
