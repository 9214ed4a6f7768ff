"""In-process Workflow Store.

The store is the single authoritative copy of every workflow. Callers receive
deep copies, so the only way to change a workflow is through a store operation,
and every such change is visible to the next reader immediately.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from workflow_studio.errors import NotFound, NotReady
from workflow_studio.ids import IdGenerator, UuidIds

from .models import (
    ConversationMessage,
    Requirements,
    Stakeholder,
    Step,
    Workflow,
    WorkflowStatus,
    utc_now,
)
from .readiness import check_readiness
from .state_machine import transition

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_NAME = "New Workflow"
AUTO_NAME_MAX_CHARS = 50


def derive_workflow_name(message: str) -> str:
    first_line = message.strip().splitlines()[0] if message.strip() else ""
    name = re.sub(r"\s+", " ", first_line).strip()
    if len(name) > AUTO_NAME_MAX_CHARS:
        name = name[: AUTO_NAME_MAX_CHARS - 3].rstrip() + "..."
    return name


@dataclass
class WorkflowStore:
    ids: IdGenerator = field(default_factory=UuidIds)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._workflows: dict[str, Workflow] = {}

    def _get_unlocked(self, workflow_id: str) -> Workflow:
        try:
            return self._workflows[workflow_id]
        except KeyError:
            raise NotFound(f"Workflow not found: {workflow_id}") from None

    def _put_unlocked(self, workflow: Workflow) -> Workflow:
        stored = workflow.model_copy(update={"updated_at": utc_now()}, deep=True)
        self._workflows[stored.id] = stored
        return stored.model_copy(deep=True)

    def list(self) -> list[Workflow]:
        with self._lock:
            return [w.model_copy(deep=True) for w in self._workflows.values()]

    def get(self, workflow_id: str) -> Workflow:
        with self._lock:
            return self._get_unlocked(workflow_id).model_copy(deep=True)

    def get_step(self, workflow_id: str, step_id: str) -> Step:
        workflow = self.get(workflow_id)
        step = workflow.find_step(step_id)
        if step is None:
            raise NotFound(f"Step not found: {step_id} (workflow {workflow_id})")
        return step

    def create(
        self,
        *,
        name: str,
        description: str | None = None,
        steps: Sequence[Step] = (),
        assigned_to: Stakeholder | None = None,
    ) -> Workflow:
        workflow = Workflow(
            id=self.ids.new_id("workflow"),
            name=name,
            description=description,
            steps=list(steps),
            assigned_to=assigned_to,
        )
        with self._lock:
            created = self._put_unlocked(workflow)
        logger.info("Workflow created", extra={"workflow_id": created.id})
        return created

    def create_draft(self) -> Workflow:
        return self.create(name=DEFAULT_WORKFLOW_NAME)

    def update(
        self,
        workflow_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        steps: Sequence[Step] | None = None,
    ) -> Workflow:
        """Replace name, description and/or the whole step list in one go."""

        updates: dict[str, object] = {}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if steps is not None:
            updates["steps"] = [s.model_dump() for s in steps]

        with self._lock:
            current = self._get_unlocked(workflow_id)
            # Duplicate step ids/orders never reach the store.
            merged = Workflow.model_validate({**current.model_dump(), **updates})
            updated = self._put_unlocked(merged)
        logger.debug("Workflow updated", extra={"workflow_id": workflow_id, "fields": sorted(updates)})
        return updated

    def update_step_requirements(
        self, workflow_id: str, step_id: str, requirements: Requirements
    ) -> Workflow:
        with self._lock:
            current = self._get_unlocked(workflow_id)
            if current.find_step(step_id) is None:
                raise NotFound(f"Step not found: {step_id} (workflow {workflow_id})")
            steps = [
                s.model_copy(update={"requirements": requirements.model_copy(deep=True)})
                if s.id == step_id
                else s
                for s in current.steps
            ]
            updated = self._put_unlocked(current.model_copy(update={"steps": steps}))
        logger.debug(
            "Step requirements updated",
            extra={
                "workflow_id": workflow_id,
                "step_id": step_id,
                "is_complete": requirements.is_complete,
            },
        )
        return updated

    def set_status(self, workflow_id: str, status: WorkflowStatus) -> Workflow:
        """Move a workflow along the lifecycle.

        Raises:
            IllegalTransitionError: if the move is not in the transition table.
            NotReady: if the target is active and a configurable step is incomplete.
        """

        with self._lock:
            current = self._get_unlocked(workflow_id)
            next_status = transition(current=current.status, to=status)
            if next_status is WorkflowStatus.ACTIVE:
                readiness = check_readiness(current)
                if not readiness.is_ready:
                    raise NotReady(readiness.errors)
            updated = self._put_unlocked(current.model_copy(update={"status": next_status}))
        logger.info(
            "Workflow status changed",
            extra={"workflow_id": workflow_id, "status": next_status.value},
        )
        return updated

    def update_conversation(
        self, workflow_id: str, messages: Sequence[ConversationMessage]
    ) -> Workflow:
        with self._lock:
            current = self._get_unlocked(workflow_id)
            conversation = [m.model_copy() for m in messages]
            return self._put_unlocked(current.model_copy(update={"conversation": conversation}))

    def auto_name(self, workflow_id: str, first_message: str) -> Workflow:
        """Name a still-unnamed workflow after the first thing the operator said."""

        with self._lock:
            current = self._get_unlocked(workflow_id)
            name = derive_workflow_name(first_message)
            if current.name != DEFAULT_WORKFLOW_NAME or not name:
                return current.model_copy(deep=True)
            return self._put_unlocked(current.model_copy(update={"name": name}))

    def delete(self, workflow_id: str) -> None:
        with self._lock:
            self._get_unlocked(workflow_id)
            del self._workflows[workflow_id]
        logger.info("Workflow deleted", extra={"workflow_id": workflow_id})
