"""Test configuration and fixtures.

Test doubles are handed to tests as fixtures; test modules do not import this file.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from workflow_studio.config import LLMConfig, StudioSettings
from workflow_studio.control_room.models import ReviewItem
from workflow_studio.ids import SequentialIds
from workflow_studio.studio import Studio
from workflow_studio.workflow.editing import EditResult
from workflow_studio.workflow.models import (
    Assignment,
    Blueprint,
    ConversationMessage,
    Step,
    StepType,
    Workflow,
)
from workflow_studio.workflow.negotiation import NegotiationResult
from workflow_studio.workflow.store import WorkflowStore


class ScriptedNegotiator:
    """Replays queued results (or raises queued exceptions) in order."""

    def __init__(self, *results: NegotiationResult | Exception) -> None:
        self.results = list(results)
        self.calls: list[tuple[Step, list[ConversationMessage]]] = []

    def negotiate(
        self, step: Step, transcript: Sequence[ConversationMessage]
    ) -> NegotiationResult:
        self.calls.append((step, list(transcript)))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedEditor:
    def __init__(self, *results: EditResult | Exception) -> None:
        self.results = list(results)
        self.calls: list[tuple[Workflow, str, list[ConversationMessage]]] = []

    def edit(
        self,
        workflow: Workflow,
        instruction: str,
        history: Sequence[ConversationMessage],
    ) -> EditResult:
        self.calls.append((workflow, instruction, list(history)))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingControl:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.approved: list[ReviewItem] = []
        self.rejected: list[ReviewItem] = []

    def approve(self, item: ReviewItem) -> None:
        self.approved.append(item)
        if self.fail:
            raise RuntimeError("execution backend unavailable")

    def reject(self, item: ReviewItem) -> None:
        self.rejected.append(item)
        if self.fail:
            raise RuntimeError("execution backend unavailable")


def _sample_result(*, allowed: int = 2, restricted: int = 1) -> NegotiationResult:
    return NegotiationResult(
        requirements_text="Reply to customer emails within one hour.",
        blueprint=Blueprint(
            green_list=[f"allowed-{i}" for i in range(allowed)],
            red_list=[f"restricted-{i}" for i in range(restricted)],
        ),
    )


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def store(ids: SequentialIds) -> WorkflowStore:
    return WorkflowStore(ids=ids)


@pytest.fixture
def workflow(store: WorkflowStore) -> Workflow:
    """Trigger, one AI action with no requirements yet, end."""
    return store.create(
        name="Email triage",
        steps=[
            Step(id="s1", label="New email", type=StepType.TRIGGER, order=0),
            Step(
                id="s2",
                label="Draft reply",
                type=StepType.ACTION,
                order=1,
                assigned_to=Assignment(type="ai", agent_name="Ada"),
            ),
            Step(id="s3", label="Done", type=StepType.END, order=2),
        ],
    )


@pytest.fixture
def settings() -> StudioSettings:
    return StudioSettings(
        _env_file=None,
        log_json=False,
        llm=LLMConfig(_env_file=None, openai_api_key="test-key"),
    )


@pytest.fixture
def negotiator() -> ScriptedNegotiator:
    return ScriptedNegotiator()


@pytest.fixture
def editor() -> ScriptedEditor:
    return ScriptedEditor()


@pytest.fixture
def make_result() -> Callable[..., NegotiationResult]:
    """Builds a canned negotiation result with the given blueprint list sizes."""
    return _sample_result


@pytest.fixture
def control() -> RecordingControl:
    return RecordingControl()


@pytest.fixture
def failing_control() -> RecordingControl:
    return RecordingControl(fail=True)


@pytest.fixture
def studio(
    settings: StudioSettings,
    ids: SequentialIds,
    negotiator: ScriptedNegotiator,
    editor: ScriptedEditor,
) -> Studio:
    return Studio(settings, ids=ids, negotiator=negotiator, editor=editor)
