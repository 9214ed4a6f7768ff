"""Pydantic request/response models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field

from workflow_studio.workflow.models import (
    Blueprint,
    ConversationMessage,
    Integrations,
    Stakeholder,
    Step,
    Workflow,
)
from workflow_studio.workflow.negotiation import TurnOutcome


class CreateWorkflowRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    steps: list[Step] = Field(default_factory=list)
    assigned_to: Stakeholder | None = None


class UpdateWorkflowRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    steps: list[Step] | None = None


class MessageRequest(BaseModel):
    text: str


class IntegrationsRequest(BaseModel):
    gmail: bool


class NegotiationView(BaseModel):
    workflow_id: str
    step_id: str
    busy: bool
    marked_complete: bool
    requirements_text: str
    blueprint: Blueprint | None
    integrations: Integrations
    messages: list[ConversationMessage]


class NegotiationTurnResponse(BaseModel):
    outcome: TurnOutcome
    session: NegotiationView


class EditTurnResponse(BaseModel):
    outcome: TurnOutcome
    messages: list[ConversationMessage]
    workflow: Workflow


class ExecutionView(BaseModel):
    workflow_id: str
    current_step_index: int
    is_running: bool
    awaiting_step_id: str | None = None
    stop_reason: str | None = None
