"""Pydantic models for workflows, steps and their negotiated requirements."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class StepType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    DECISION = "decision"
    END = "end"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class Assignment(BaseModel):
    """Who carries out a step: an AI agent or a human worker."""

    type: Literal["ai", "human"]
    agent_name: str | None = None
    human_id: str | None = None
    human_name: str | None = None

    @property
    def worker_name(self) -> str | None:
        return self.agent_name if self.type == "ai" else self.human_name


class Stakeholder(BaseModel):
    name: str
    type: Literal["ai", "human"]


class Blueprint(BaseModel):
    """Allowed actions and hard restrictions bounding what a worker may do."""

    green_list: list[str] = Field(default_factory=list)
    red_list: list[str] = Field(default_factory=list)
    outstanding_questions: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.green_list and not self.red_list


class Integrations(BaseModel):
    gmail: bool = False


class ConversationMessage(BaseModel):
    sender: Literal["user", "system"]
    text: str
    timestamp: datetime = Field(default_factory=utc_now)

    # Attachments.
    excel_data: str | None = None
    image_url: str | None = None


class Requirements(BaseModel):
    is_complete: bool = False
    requirements_text: str = ""
    chat_history: list[ConversationMessage] = Field(default_factory=list)
    blueprint: Blueprint | None = None
    integrations: Integrations = Field(default_factory=Integrations)
    custom_requirements: list[str] = Field(default_factory=list)


class Step(BaseModel):
    id: str
    label: str
    type: StepType = StepType.ACTION
    order: int
    assigned_to: Assignment | None = None
    requirements: Requirements | None = None

    def requires_configuration(self) -> bool:
        """Whether the step must have complete requirements before activation.

        Triggers and end steps are exempt; so is any step not handed to an AI worker.
        """

        if self.type in (StepType.TRIGGER, StepType.END):
            return False
        return self.assigned_to is not None and self.assigned_to.type == "ai"


def _check_steps(steps: Sequence[Step]) -> None:
    ids = [s.id for s in steps]
    if len(set(ids)) != len(ids):
        raise ValueError("step ids must be unique within a workflow")
    orders = [s.order for s in steps]
    if len(set(orders)) != len(orders):
        raise ValueError("step order values must be distinct within a workflow")


def renumber_steps(steps: Sequence[Step]) -> list[Step]:
    """Assign orders 0..n-1, keeping the current relative order.

    Ties in the incoming order keep their list position.
    """

    ranked = sorted(enumerate(steps), key=lambda pair: (pair[1].order, pair[0]))
    return [step.model_copy(update={"order": idx}) for idx, (_, step) in enumerate(ranked)]


class Workflow(BaseModel):
    id: str
    name: str
    description: str | None = None
    steps: list[Step] = Field(default_factory=list)
    conversation: list[ConversationMessage] = Field(default_factory=list)
    assigned_to: Stakeholder | None = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _steps_are_well_formed(self) -> Workflow:
        _check_steps(self.steps)
        return self

    def ordered_steps(self) -> list[Step]:
        return sorted(self.steps, key=lambda s: s.order)

    def find_step(self, step_id: str) -> Step | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
