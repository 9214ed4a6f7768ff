"""Studio REST API.

Thin wrappers over :class:`workflow_studio.studio.Studio`. All routes are
mounted under `/api`.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from workflow_studio import __version__
from workflow_studio.control_room.events import ControlRoomUpdate
from workflow_studio.control_room.models import ReviewItem, RosterEntry
from workflow_studio.server.models import (
    CreateWorkflowRequest,
    EditTurnResponse,
    ExecutionView,
    IntegrationsRequest,
    MessageRequest,
    NegotiationTurnResponse,
    NegotiationView,
    UpdateWorkflowRequest,
)
from workflow_studio.studio import Studio
from workflow_studio.workflow.models import ConversationMessage, Requirements, Workflow
from workflow_studio.workflow.negotiation import NegotiationSession

router = APIRouter()


def _studio(request: Request) -> Studio:
    studio = getattr(request.app.state, "studio", None)
    if not isinstance(studio, Studio):
        # Only reachable when the app was built without create_app().
        raise HTTPException(status_code=500, detail="Studio not configured")
    return studio


def _negotiation_view(session: NegotiationSession) -> NegotiationView:
    return NegotiationView(
        workflow_id=session.workflow_id,
        step_id=session.step_id,
        busy=session.busy,
        marked_complete=session.marked_complete,
        requirements_text=session.requirements_text,
        blueprint=session.blueprint,
        integrations=session.integrations,
        messages=list(session.messages),
    )


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    studio = _studio(request)
    return {
        "status": "ok",
        "ok": True,
        "version": __version__,
        "controlRoomAttached": studio.control_room.attached,
    }


@router.get("/workflows")
def list_workflows(request: Request) -> list[Workflow]:
    return _studio(request).store.list()


@router.post("/workflows", status_code=201)
def create_workflow(request: Request, body: CreateWorkflowRequest) -> Workflow:
    store = _studio(request).store
    if body.name is None and not body.steps:
        return store.create_draft()
    return store.create(
        name=body.name or "Untitled Workflow",
        description=body.description,
        steps=body.steps,
        assigned_to=body.assigned_to,
    )


@router.get("/workflows/{workflow_id}")
def get_workflow(request: Request, workflow_id: str) -> Workflow:
    return _studio(request).store.get(workflow_id)


@router.put("/workflows/{workflow_id}")
def update_workflow(request: Request, workflow_id: str, body: UpdateWorkflowRequest) -> Workflow:
    return _studio(request).store.update(
        workflow_id, name=body.name, description=body.description, steps=body.steps
    )


@router.delete("/workflows/{workflow_id}", status_code=204)
def delete_workflow(request: Request, workflow_id: str) -> Response:
    _studio(request).delete_workflow(workflow_id)
    return Response(status_code=204)


@router.put("/workflows/{workflow_id}/steps/{step_id}/requirements")
def put_step_requirements(
    request: Request, workflow_id: str, step_id: str, body: Requirements
) -> Workflow:
    return _studio(request).store.update_step_requirements(workflow_id, step_id, body)


@router.get("/workflows/{workflow_id}/readiness")
def get_readiness(request: Request, workflow_id: str) -> dict[str, Any]:
    return _studio(request).readiness(workflow_id).to_json()


@router.post("/workflows/{workflow_id}/activate")
def activate(request: Request, workflow_id: str) -> JSONResponse:
    result = _studio(request).activate(workflow_id)
    return JSONResponse(status_code=200 if result.is_ready else 409, content=result.to_json())


@router.get("/workflows/{workflow_id}/steps/{step_id}/negotiation")
def get_negotiation(request: Request, workflow_id: str, step_id: str) -> NegotiationView:
    return _negotiation_view(_studio(request).negotiation(workflow_id, step_id))


@router.post("/workflows/{workflow_id}/steps/{step_id}/negotiation/messages")
def send_negotiation_message(
    request: Request, workflow_id: str, step_id: str, body: MessageRequest
) -> NegotiationTurnResponse:
    session = _studio(request).negotiation(workflow_id, step_id)
    outcome = session.send(body.text)
    return NegotiationTurnResponse(outcome=outcome, session=_negotiation_view(session))


@router.post("/workflows/{workflow_id}/steps/{step_id}/negotiation/integrations")
def set_negotiation_integrations(
    request: Request, workflow_id: str, step_id: str, body: IntegrationsRequest
) -> NegotiationView:
    session = _studio(request).negotiation(workflow_id, step_id)
    session.link_mailbox(body.gmail)
    return _negotiation_view(session)


@router.post("/workflows/{workflow_id}/steps/{step_id}/negotiation/complete")
def complete_negotiation(request: Request, workflow_id: str, step_id: str) -> Requirements:
    return _studio(request).negotiation(workflow_id, step_id).mark_complete()


@router.get("/workflows/{workflow_id}/chat")
def get_chat(request: Request, workflow_id: str) -> list[ConversationMessage]:
    return _studio(request).store.get(workflow_id).conversation


@router.post("/workflows/{workflow_id}/chat")
def send_chat_message(request: Request, workflow_id: str, body: MessageRequest) -> EditTurnResponse:
    studio = _studio(request)
    session = studio.edit_session(workflow_id)
    outcome = session.send(body.text)
    return EditTurnResponse(
        outcome=outcome,
        messages=list(session.messages),
        workflow=studio.store.get(workflow_id),
    )


@router.post("/workflows/{workflow_id}/execute", status_code=202)
def execute_workflow(request: Request, workflow_id: str) -> ExecutionView:
    state = _studio(request).execution.start(workflow_id)
    return ExecutionView(
        workflow_id=state.workflow_id,
        current_step_index=state.current_step_index,
        is_running=state.is_running,
        awaiting_step_id=state.awaiting_step_id,
        stop_reason=state.stop_reason,
    )


@router.get("/control-room")
def get_control_room(request: Request) -> dict[str, Any]:
    return _studio(request).control_room.snapshot().to_json()


@router.get("/control-room/roster")
def get_roster(request: Request) -> list[RosterEntry]:
    return list(_studio(request).roster.snapshot())


@router.put("/control-room/roster")
def put_roster(request: Request, body: list[RosterEntry]) -> dict[str, Any]:
    studio = _studio(request)
    studio.roster.set_roster(body)
    return studio.control_room.snapshot().to_json()


@router.post("/control-room/events", status_code=202)
def publish_event(request: Request, body: ControlRoomUpdate) -> dict[str, int]:
    return {"delivered": _studio(request).bus.publish(body)}


@router.post("/control-room/reviews/{item_id}/approve")
def approve_review(request: Request, item_id: str) -> ReviewItem:
    return _studio(request).control_room.approve(item_id)


@router.post("/control-room/reviews/{item_id}/reject")
def reject_review(request: Request, item_id: str) -> ReviewItem:
    return _studio(request).control_room.reject(item_id)
