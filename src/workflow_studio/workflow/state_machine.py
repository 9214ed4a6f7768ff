"""Workflow lifecycle status transitions.

Activation (draft -> active) is additionally gated on readiness; see
:mod:`workflow_studio.workflow.readiness`. This module only knows which moves
are legal at all.
"""

from __future__ import annotations

from .models import WorkflowStatus

ALLOWED_TRANSITIONS: dict[WorkflowStatus, set[WorkflowStatus]] = {
    WorkflowStatus.DRAFT: {WorkflowStatus.ACTIVE},
    WorkflowStatus.ACTIVE: {WorkflowStatus.PAUSED},
    WorkflowStatus.PAUSED: {WorkflowStatus.ACTIVE},
}


class IllegalTransitionError(ValueError):
    pass


def can_transition(current: WorkflowStatus, to: WorkflowStatus) -> bool:
    return to in ALLOWED_TRANSITIONS.get(current, set())


def transition(*, current: WorkflowStatus, to: WorkflowStatus) -> WorkflowStatus:
    if not can_transition(current, to):
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to
