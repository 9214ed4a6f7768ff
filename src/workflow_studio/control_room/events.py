"""Control-room update events and the actions they carry.

`Action` is a tagged variant keyed by ``type``. Known tags get a typed payload;
anything else is kept as an :class:`OpaqueAction` with its payload untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from workflow_studio.workflow.models import utc_now

CONTROL_ROOM_TOPIC = "control-room-update"
DEFAULT_ACTION_SUMMARY = "Action requires approval"


class EventType(str, Enum):
    WORKFLOW_UPDATE = "workflow_update"
    REVIEW_NEEDED = "review_needed"
    COMPLETED = "completed"


class ApprovalPayload(BaseModel):
    step: str = ""
    message: str = ""


class ApprovalRequired(BaseModel):
    type: Literal["approval_required"] = "approval_required"
    payload: ApprovalPayload = Field(default_factory=ApprovalPayload)

    def summary(self) -> str:
        return self.payload.message or DEFAULT_ACTION_SUMMARY


class GuidancePayload(BaseModel):
    question: str = "Agent needs guidance"
    requested_file_type: Literal["excel", "image", "document", "any"] | None = None


class GuidanceRequested(BaseModel):
    type: Literal["guidance_requested"] = "guidance_requested"
    payload: GuidancePayload = Field(default_factory=GuidancePayload)

    def summary(self) -> str:
        return self.payload.question


class OpaqueAction(BaseModel):
    type: str = "unknown"
    payload: Any = None

    def summary(self) -> str:
        return DEFAULT_ACTION_SUMMARY


Action = ApprovalRequired | GuidanceRequested | OpaqueAction

_KNOWN_ACTIONS: dict[str, type[ApprovalRequired] | type[GuidanceRequested]] = {
    "approval_required": ApprovalRequired,
    "guidance_requested": GuidanceRequested,
}


def parse_action(raw: object) -> Action:
    if isinstance(raw, ApprovalRequired | GuidanceRequested | OpaqueAction):
        return raw
    if not isinstance(raw, Mapping):
        return OpaqueAction(type="unknown", payload={} if raw is None else raw)

    tag = raw.get("type")
    tag = tag if isinstance(tag, str) and tag else "unknown"
    model = _KNOWN_ACTIONS.get(tag)
    if model is not None:
        try:
            return model.model_validate(dict(raw))
        except ValidationError:
            # Known tag with an unexpected payload shape stays opaque.
            pass
    return OpaqueAction(type=tag, payload=raw.get("payload"))


class UpdateData(BaseModel):
    workflow_id: str
    step_id: str | None = None
    agent_id: str | None = None
    digital_worker_name: str | None = None
    message: str | None = None
    action: Action | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("action", mode="before")
    @classmethod
    def _parse_action(cls, value: object) -> object:
        if value is None:
            return None
        return parse_action(value)


class ControlRoomUpdate(BaseModel):
    type: EventType
    data: UpdateData
