"""Readiness Gate: may a workflow move from draft to active?"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from workflow_studio.errors import NotReady

from .models import Step, Workflow, WorkflowStatus

if TYPE_CHECKING:
    from .store import WorkflowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReadinessResult:
    is_ready: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    def to_json(self) -> dict[str, object]:
        return {"isReady": self.is_ready, "errors": list(self.errors)}


def step_needs_attention(step: Step) -> bool:
    if not step.requires_configuration():
        return False
    return step.requirements is None or not step.requirements.is_complete


def check_readiness(workflow: Workflow) -> ReadinessResult:
    """Pure predicate plus one error per incomplete configurable step, in step order."""

    errors = tuple(
        f"{step.label} needs attention"
        for step in workflow.ordered_steps()
        if step_needs_attention(step)
    )
    return ReadinessResult(is_ready=not errors, errors=errors)


def activate_workflow(store: WorkflowStore, workflow_id: str) -> ReadinessResult:
    """Activate a workflow if, and only if, it passes the gate.

    The gate itself is enforced by :meth:`WorkflowStore.set_status`; a refused
    activation leaves the status untouched. Activating an already active
    workflow is a no-op that still reports readiness.
    """

    workflow = store.get(workflow_id)
    if workflow.status is WorkflowStatus.ACTIVE:
        return check_readiness(workflow)

    try:
        store.set_status(workflow_id, WorkflowStatus.ACTIVE)
    except NotReady as e:
        logger.warning(
            "Activation refused",
            extra={"workflow_id": workflow_id, "errors": list(e.errors)},
        )
        return ReadinessResult(is_ready=False, errors=e.errors)
    return ReadinessResult(is_ready=True)
