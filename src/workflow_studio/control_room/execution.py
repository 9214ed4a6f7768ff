"""Simulated workflow execution.

Walks an active workflow's steps in order and reports progress on the event
bus. A decision step, or any step with a blueprint, stops for operator review;
approval resumes the run, rejection ends it. This is also the execution-control
collaborator the reconciler notifies on approve/reject.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime

from workflow_studio.errors import NotFound
from workflow_studio.workflow.models import Step, StepType, Workflow, WorkflowStatus, utc_now
from workflow_studio.workflow.state_machine import IllegalTransitionError
from workflow_studio.workflow.store import WorkflowStore

from .channels import EventBus
from .events import ApprovalPayload, ApprovalRequired, ControlRoomUpdate, EventType, UpdateData
from .models import ReviewItem

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionState:
    workflow_id: str
    current_step_index: int = 0
    is_running: bool = True
    awaiting_step_id: str | None = None
    started_at: datetime = field(default_factory=utc_now)
    stop_reason: str | None = None


def _needs_review(step: Step) -> bool:
    if step.type is StepType.DECISION:
        return True
    return step.requirements is not None and step.requirements.blueprint is not None


def _ai_worker(step: Step) -> str | None:
    if step.assigned_to is None or step.assigned_to.type != "ai":
        return None
    return step.assigned_to.agent_name


class ExecutionService:
    def __init__(
        self,
        *,
        store: WorkflowStore,
        bus: EventBus,
        default_worker_name: str = "default",
    ) -> None:
        self._store = store
        self._bus = bus
        self._default_worker_name = default_worker_name
        self._states: dict[str, ExecutionState] = {}
        self._lock = threading.RLock()

    def _publish(self, event_type: EventType, **data: object) -> None:
        self._bus.publish(ControlRoomUpdate(type=event_type, data=UpdateData(**data)))

    def state(self, workflow_id: str) -> ExecutionState | None:
        with self._lock:
            current = self._states.get(workflow_id)
            return replace(current) if current is not None else None

    def start(self, workflow_id: str) -> ExecutionState:
        workflow = self._store.get(workflow_id)
        if workflow.status is not WorkflowStatus.ACTIVE:
            raise IllegalTransitionError("Workflow must be active to execute")

        with self._lock:
            self._states[workflow_id] = ExecutionState(workflow_id=workflow_id)
            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=workflow_id,
                message=f'Workflow "{workflow.name}" started',
            )
            logger.info("Execution started", extra={"workflow_id": workflow_id})
            self._run(workflow_id)
            return replace(self._states[workflow_id])

    def _stop(self, state: ExecutionState, reason: str | None = None) -> None:
        state.is_running = False
        state.stop_reason = reason
        if reason:
            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=state.workflow_id,
                message=f"Workflow stopped: {reason}",
            )
            logger.info(
                "Execution stopped",
                extra={"workflow_id": state.workflow_id, "reason": reason},
            )

    def _complete(self, state: ExecutionState, workflow: Workflow) -> None:
        self._stop(state)
        worker = workflow.assigned_to.name if workflow.assigned_to else self._default_worker_name
        self._publish(
            EventType.COMPLETED,
            workflow_id=workflow.id,
            digital_worker_name=worker,
            message=f'Workflow "{workflow.name}" completed',
        )
        logger.info("Execution completed", extra={"workflow_id": workflow.id})

    def _run(self, workflow_id: str) -> None:
        while True:
            state = self._states.get(workflow_id)
            if state is None or not state.is_running or state.awaiting_step_id is not None:
                return

            try:
                workflow = self._store.get(workflow_id)
            except NotFound:
                self._stop(state, "Workflow not found")
                return

            steps = workflow.ordered_steps()
            if state.current_step_index >= len(steps):
                self._complete(state, workflow)
                return

            step = steps[state.current_step_index]
            worker = _ai_worker(step)
            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=workflow_id,
                step_id=step.id,
                digital_worker_name=worker,
                message=f"Executing step: {step.label}",
            )

            if _needs_review(step):
                state.awaiting_step_id = step.id
                self._publish(
                    EventType.REVIEW_NEEDED,
                    workflow_id=workflow_id,
                    step_id=step.id,
                    digital_worker_name=worker or self._default_worker_name,
                    action=ApprovalRequired(
                        payload=ApprovalPayload(
                            step=step.label,
                            message=f"Action required for step: {step.label}",
                        )
                    ),
                )
                return

            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=workflow_id,
                step_id=step.id,
                digital_worker_name=worker,
                message=f"Completed step: {step.label}",
            )
            state.current_step_index += 1

    def approve(self, item: ReviewItem) -> None:
        with self._lock:
            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=item.workflow_id,
                step_id=item.step_id,
                message=f"Approved: {item.action.type}",
            )
            state = self._states.get(item.workflow_id)
            if state is None or not state.is_running or state.awaiting_step_id != item.step_id:
                return
            state.awaiting_step_id = None
            state.current_step_index += 1
            self._run(item.workflow_id)

    def reject(self, item: ReviewItem) -> None:
        with self._lock:
            self._publish(
                EventType.WORKFLOW_UPDATE,
                workflow_id=item.workflow_id,
                step_id=item.step_id,
                message=f"Rejected: {item.action.type}",
            )
            state = self._states.get(item.workflow_id)
            if state is None or state.awaiting_step_id != item.step_id:
                return
            state.awaiting_step_id = None
            self._stop(state, f"Rejected at step {item.step_id}")
