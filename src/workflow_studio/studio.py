"""Composition root.

`Studio` owns the process-wide pieces (store, channels, reconciler, execution)
and hands out one negotiation session per step and one edit session per
workflow.
"""

from __future__ import annotations

import logging
import threading

from workflow_studio.config import StudioSettings
from workflow_studio.control_room.channels import EventBus, RosterSource
from workflow_studio.control_room.dashboard import ControlRoom
from workflow_studio.control_room.execution import ExecutionService
from workflow_studio.control_room.reconciler import LiveOperationsReconciler, ReconcilerPolicy
from workflow_studio.ids import IdGenerator, UuidIds
from workflow_studio.llm.assistants import LLMBlueprintNegotiator, LLMWorkflowEditor
from workflow_studio.llm.factory import LLMFactory
from workflow_studio.llm.provider import LLMProvider
from workflow_studio.workflow.editing import WorkflowEditor, WorkflowEditSession
from workflow_studio.workflow.negotiation import BlueprintNegotiator, NegotiationSession
from workflow_studio.workflow.readiness import ReadinessResult, activate_workflow, check_readiness
from workflow_studio.workflow.store import WorkflowStore

logger = logging.getLogger(__name__)


class Studio:
    def __init__(
        self,
        settings: StudioSettings | None = None,
        *,
        ids: IdGenerator | None = None,
        negotiator: BlueprintNegotiator | None = None,
        editor: WorkflowEditor | None = None,
        provider: LLMProvider | None = None,
    ) -> None:
        self.settings = settings or StudioSettings()
        self.ids = ids or UuidIds()

        self.store = WorkflowStore(ids=self.ids)
        self.bus = EventBus()
        self.roster = RosterSource()
        self.execution = ExecutionService(
            store=self.store,
            bus=self.bus,
            default_worker_name=self.settings.default_worker_name,
        )
        self.reconciler = LiveOperationsReconciler(
            control=self.execution,
            ids=self.ids,
            policy=ReconcilerPolicy(
                standby_workflow=self.settings.standby_workflow,
                default_worker_name=self.settings.default_worker_name,
            ),
        )
        self.control_room = ControlRoom(bus=self.bus, roster=self.roster, reconciler=self.reconciler)

        self._provider = provider
        self._negotiator = negotiator
        self._editor = editor
        self._negotiations: dict[tuple[str, str], NegotiationSession] = {}
        self._edits: dict[str, WorkflowEditSession] = {}
        self._lock = threading.Lock()

    def _llm(self) -> LLMProvider:
        # Built on first use; no credentials are needed until a chat starts.
        if self._provider is None:
            self._provider = LLMFactory.create(self.settings.llm)
        return self._provider

    @property
    def negotiator(self) -> BlueprintNegotiator:
        if self._negotiator is None:
            self._negotiator = LLMBlueprintNegotiator(self._llm())
        return self._negotiator

    @property
    def editor(self) -> WorkflowEditor:
        if self._editor is None:
            self._editor = LLMWorkflowEditor(self._llm())
        return self._editor

    def _step_completed(self, workflow_id: str, step_id: str) -> None:
        readiness = check_readiness(self.store.get(workflow_id))
        logger.info(
            "Step configured",
            extra={
                "workflow_id": workflow_id,
                "step_id": step_id,
                "workflow_ready": readiness.is_ready,
                "remaining": len(readiness.errors),
            },
        )

    def negotiation(self, workflow_id: str, step_id: str) -> NegotiationSession:
        key = (workflow_id, step_id)
        with self._lock:
            session = self._negotiations.get(key)
            if session is not None and not session.busy and session.is_stale():
                # The step was rewritten elsewhere; reopen from the store.
                del self._negotiations[key]
                session = None
            if session is None:
                session = NegotiationSession(
                    store=self.store,
                    workflow_id=workflow_id,
                    step_id=step_id,
                    negotiator=self.negotiator,
                    require_blueprint=self.settings.require_blueprint_on_complete,
                    on_complete=self._step_completed,
                )
                self._negotiations[key] = session
            return session

    def edit_session(self, workflow_id: str) -> WorkflowEditSession:
        with self._lock:
            session = self._edits.get(workflow_id)
            if session is None:
                session = WorkflowEditSession(
                    store=self.store, workflow_id=workflow_id, editor=self.editor
                )
                self._edits[workflow_id] = session
            return session

    def readiness(self, workflow_id: str) -> ReadinessResult:
        return check_readiness(self.store.get(workflow_id))

    def activate(self, workflow_id: str) -> ReadinessResult:
        return activate_workflow(self.store, workflow_id)

    def delete_workflow(self, workflow_id: str) -> None:
        self.store.delete(workflow_id)
        with self._lock:
            self._edits.pop(workflow_id, None)
            for key in [k for k in self._negotiations if k[0] == workflow_id]:
                del self._negotiations[key]
