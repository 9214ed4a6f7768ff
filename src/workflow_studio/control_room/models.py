"""Roster entries and the three derived control-room item types."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from workflow_studio.workflow.models import utc_now

from .events import Action, parse_action

WorkerStatus = Literal["active", "inactive", "needs_attention"]


class RosterEntry(BaseModel):
    """A worker node as reported by the roster source. Read-only to the core."""

    name: str
    type: Literal["ai", "human"]
    status: WorkerStatus = "inactive"
    role: str | None = None
    assigned_workflows: list[str] = Field(default_factory=list)

    def is_active_ai(self) -> bool:
        return self.type == "ai" and self.status == "active"


class WatchingItem(BaseModel):
    id: str
    name: str
    workflow: str


class ReviewItem(BaseModel):
    id: str
    workflow_id: str
    step_id: str
    digital_worker_name: str
    action: Action
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("action", mode="before")
    @classmethod
    def _parse_action(cls, value: object) -> Action:
        return parse_action(value)


class CompletedItem(BaseModel):
    id: str
    workflow_id: str
    digital_worker_name: str
    goal: str
    timestamp: datetime = Field(default_factory=utc_now)
