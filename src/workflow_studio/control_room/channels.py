"""In-process publish/subscribe channels feeding the control room.

`EventBus` carries execution-status events on named topics. `RosterSource`
holds the worker roster and hands every listener the full roster after each
change; listeners never see diffs.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence

from workflow_studio.errors import NotFound

from .events import CONTROL_ROOM_TOPIC, ControlRoomUpdate
from .models import RosterEntry, WorkerStatus

logger = logging.getLogger(__name__)

UpdateHandler = Callable[[ControlRoomUpdate], object]
RosterListener = Callable[[Sequence[RosterEntry]], object]


class Subscription:
    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._cancel()


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[UpdateHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, handler: UpdateHandler, topic: str = CONTROL_ROOM_TOPIC) -> Subscription:
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

        def cancel() -> None:
            with self._lock:
                handlers = self._handlers.get(topic, [])
                if handler in handlers:
                    handlers.remove(handler)

        return Subscription(cancel)

    def subscriber_count(self, topic: str = CONTROL_ROOM_TOPIC) -> int:
        with self._lock:
            return len(self._handlers.get(topic, []))

    def publish(self, update: ControlRoomUpdate, topic: str = CONTROL_ROOM_TOPIC) -> int:
        """Deliver synchronously, in subscription order. Returns the delivery count."""

        with self._lock:
            handlers = list(self._handlers.get(topic, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(update)
                delivered += 1
            except Exception:
                logger.exception(
                    "Control-room subscriber failed",
                    extra={"topic": topic, "event_type": update.type.value},
                )
        return delivered


class RosterSource:
    def __init__(self, entries: Iterable[RosterEntry] = ()) -> None:
        self._entries: list[RosterEntry] = [e.model_copy() for e in entries]
        self._listeners: list[RosterListener] = []
        self._lock = threading.Lock()

    def snapshot(self) -> tuple[RosterEntry, ...]:
        with self._lock:
            return tuple(e.model_copy() for e in self._entries)

    def subscribe(self, listener: RosterListener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)

        def cancel() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return Subscription(cancel)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Roster listener failed", extra={"roster_size": len(snapshot)})

    def set_roster(self, entries: Iterable[RosterEntry]) -> None:
        with self._lock:
            self._entries = [e.model_copy() for e in entries]
        self._notify()

    def upsert_worker(self, entry: RosterEntry) -> None:
        with self._lock:
            for idx, existing in enumerate(self._entries):
                if existing.name == entry.name:
                    self._entries[idx] = entry.model_copy()
                    break
            else:
                self._entries.append(entry.model_copy())
        self._notify()

    def _replace_worker(self, name: str, **updates: object) -> None:
        with self._lock:
            for idx, existing in enumerate(self._entries):
                if existing.name == name:
                    self._entries[idx] = existing.model_copy(update=updates)
                    break
            else:
                raise NotFound(f"Worker not found: {name}")
        self._notify()

    def set_worker_status(self, name: str, status: WorkerStatus) -> None:
        self._replace_worker(name, status=status)

    def assign_workflow(self, name: str, workflow_id: str) -> None:
        with self._lock:
            current = next((e for e in self._entries if e.name == name), None)
        if current is None:
            raise NotFound(f"Worker not found: {name}")
        if workflow_id in current.assigned_workflows:
            return
        self._replace_worker(name, assigned_workflows=[*current.assigned_workflows, workflow_id])
