"""Live Operations Reconciler.

Two independent inputs feed the control room:

* roster snapshots (the full worker list, delivered on every change), and
* a stream of :class:`ControlRoomUpdate` events.

Both are folded into one :class:`ControlRoomState` by pure functions. The
:class:`LiveOperationsReconciler` only owns the current state, the id source,
and the execution-control collaborator used by approve/reject.

Rules:
- Watching is keyed by worker name. A roster tick drops names that are no
  longer active AI workers and adds newly active ones; existing rows are never
  rewritten.
- ``workflow_update`` adds a Watching row for an unseen worker, else no-op.
- ``review_needed`` always appends a Review item; reviews are never deduplicated.
- ``completed`` appends a Completed item and clears every Watching row for
  that workflow, whichever worker produced it.
- Every list keeps arrival order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Protocol

from workflow_studio.errors import NotFound
from workflow_studio.ids import IdGenerator

from .events import ControlRoomUpdate, EventType, OpaqueAction
from .models import CompletedItem, ReviewItem, RosterEntry, WatchingItem

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_GOAL = "Workflow completed"


class ExecutionControl(Protocol):
    """Notifies the execution side of an operator decision."""

    def approve(self, item: ReviewItem) -> None: ...

    def reject(self, item: ReviewItem) -> None: ...


@dataclass(frozen=True, slots=True)
class ReconcilerPolicy:
    standby_workflow: str = "standby"
    default_worker_name: str = "default"


@dataclass(frozen=True, slots=True)
class ControlRoomState:
    watching: tuple[WatchingItem, ...] = ()
    review: tuple[ReviewItem, ...] = ()
    completed: tuple[CompletedItem, ...] = ()

    def to_json(self) -> dict[str, object]:
        return {
            "watching": [i.model_dump(mode="json") for i in self.watching],
            "review": [i.model_dump(mode="json") for i in self.review],
            "completed": [i.model_dump(mode="json") for i in self.completed],
        }


def reconcile_roster(
    state: ControlRoomState,
    roster: Sequence[RosterEntry],
    *,
    ids: IdGenerator,
    policy: ReconcilerPolicy = ReconcilerPolicy(),
) -> ControlRoomState:
    active = [worker for worker in roster if worker.is_active_ai()]
    active_names = {worker.name for worker in active}

    kept = tuple(item for item in state.watching if item.name in active_names)
    present = {item.name for item in kept}

    added: list[WatchingItem] = []
    for worker in active:
        if worker.name in present:
            continue
        present.add(worker.name)
        workflow = (
            worker.assigned_workflows[0] if worker.assigned_workflows else policy.standby_workflow
        )
        added.append(WatchingItem(id=ids.new_id("watching"), name=worker.name, workflow=workflow))

    if len(kept) != len(state.watching) or added:
        logger.debug(
            "Roster reconciled",
            extra={
                "removed": len(state.watching) - len(kept),
                "added": [item.name for item in added],
            },
        )
    return replace(state, watching=kept + tuple(added))


def apply_update(
    state: ControlRoomState,
    update: ControlRoomUpdate,
    *,
    ids: IdGenerator,
    policy: ReconcilerPolicy = ReconcilerPolicy(),
) -> ControlRoomState:
    data = update.data

    if update.type is EventType.WORKFLOW_UPDATE:
        name = data.digital_worker_name
        if not name or any(item.name == name for item in state.watching):
            return state
        item = WatchingItem(id=ids.new_id("watching"), name=name, workflow=data.workflow_id)
        return replace(state, watching=(*state.watching, item))

    if update.type is EventType.REVIEW_NEEDED:
        review = ReviewItem(
            id=ids.new_id("review"),
            workflow_id=data.workflow_id,
            step_id=data.step_id or "",
            digital_worker_name=data.digital_worker_name or policy.default_worker_name,
            action=data.action or OpaqueAction(type="unknown", payload={}),
            timestamp=data.timestamp,
        )
        return replace(state, review=(*state.review, review))

    if update.type is EventType.COMPLETED:
        done = CompletedItem(
            id=ids.new_id("completed"),
            workflow_id=data.workflow_id,
            digital_worker_name=data.digital_worker_name or policy.default_worker_name,
            goal=data.message or DEFAULT_COMPLETION_GOAL,
            timestamp=data.timestamp,
        )
        watching = tuple(item for item in state.watching if item.workflow != data.workflow_id)
        return replace(state, watching=watching, completed=(*state.completed, done))

    return state


def remove_review_item(state: ControlRoomState, item_id: str) -> ControlRoomState:
    return replace(state, review=tuple(i for i in state.review if i.id != item_id))


class LiveOperationsReconciler:
    def __init__(
        self,
        *,
        control: ExecutionControl,
        ids: IdGenerator,
        policy: ReconcilerPolicy | None = None,
    ) -> None:
        self._control = control
        self._ids = ids
        self._policy = policy or ReconcilerPolicy()
        self._state = ControlRoomState()
        # Never held across a control call: approving can publish new events
        # that land back in on_update.
        self._lock = threading.Lock()

    @property
    def state(self) -> ControlRoomState:
        return self._state

    def on_roster(self, roster: Sequence[RosterEntry]) -> ControlRoomState:
        with self._lock:
            self._state = reconcile_roster(self._state, roster, ids=self._ids, policy=self._policy)
            return self._state

    def on_update(self, update: ControlRoomUpdate) -> ControlRoomState:
        with self._lock:
            self._state = apply_update(self._state, update, ids=self._ids, policy=self._policy)
            return self._state

    def review_item(self, item_id: str) -> ReviewItem:
        for item in self._state.review:
            if item.id == item_id:
                return item
        raise NotFound(f"Review item not found: {item_id}")

    def approve(self, item_id: str) -> ReviewItem:
        return self._decide(item_id, approved=True)

    def reject(self, item_id: str) -> ReviewItem:
        return self._decide(item_id, approved=False)

    def _decide(self, item_id: str, *, approved: bool) -> ReviewItem:
        item = self.review_item(item_id)
        decision = "approve" if approved else "reject"
        try:
            if approved:
                self._control.approve(item)
            else:
                self._control.reject(item)
        except Exception:
            # The item is retired either way; a failed call is not re-surfaced.
            logger.exception(
                "Execution control call failed",
                extra={"review_item_id": item_id, "decision": decision},
            )
        finally:
            with self._lock:
                self._state = remove_review_item(self._state, item_id)
        logger.info(
            "Review item retired",
            extra={"review_item_id": item_id, "decision": decision},
        )
        return item
