"""Live operations: the control-room triage view over running workflows."""

from workflow_studio.control_room.channels import EventBus, RosterSource
from workflow_studio.control_room.dashboard import ControlRoom
from workflow_studio.control_room.events import ControlRoomUpdate, EventType
from workflow_studio.control_room.reconciler import ControlRoomState, LiveOperationsReconciler

__all__ = [
    "ControlRoom",
    "ControlRoomState",
    "ControlRoomUpdate",
    "EventBus",
    "EventType",
    "LiveOperationsReconciler",
    "RosterSource",
]
