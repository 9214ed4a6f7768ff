"""Control-room view adapter.

Binds a :class:`LiveOperationsReconciler` to the event bus and the roster for
as long as the view is open.
"""

from __future__ import annotations

import logging
from types import TracebackType

from .channels import EventBus, RosterSource, Subscription
from .models import ReviewItem
from .reconciler import ControlRoomState, LiveOperationsReconciler

logger = logging.getLogger(__name__)


class ControlRoom:
    def __init__(
        self,
        *,
        bus: EventBus,
        roster: RosterSource,
        reconciler: LiveOperationsReconciler,
    ) -> None:
        self._bus = bus
        self._roster = roster
        self._reconciler = reconciler
        self._subscriptions: list[Subscription] = []

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def attach(self) -> None:
        if self.attached:
            return
        self._subscriptions = [
            self._bus.subscribe(self._reconciler.on_update),
            self._roster.subscribe(self._reconciler.on_roster),
        ]
        self._reconciler.on_roster(self._roster.snapshot())
        logger.info("Control room attached")

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.info("Control room detached")

    def __enter__(self) -> ControlRoom:
        self.attach()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.detach()

    def snapshot(self) -> ControlRoomState:
        return self._reconciler.state

    def approve(self, item_id: str) -> ReviewItem:
        return self._reconciler.approve(item_id)

    def reject(self, item_id: str) -> ReviewItem:
        return self._reconciler.reject(item_id)
