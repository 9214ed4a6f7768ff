from __future__ import annotations

import threading
from collections.abc import Sequence

from workflow_studio.errors import ExternalCallFailure
from workflow_studio.workflow.editing import EditResult, WorkflowEditSession, error_text
from workflow_studio.workflow.models import ConversationMessage, Step, StepType, Workflow
from workflow_studio.workflow.negotiation import TurnOutcome
from workflow_studio.workflow.store import WorkflowStore


def test_reply_with_workflow_replaces_steps(
    store: WorkflowStore, workflow: Workflow, editor
) -> None:
    rewritten = workflow.model_copy(
        update={
            "name": "Email triage v2",
            "steps": [
                Step(id="s1", label="New email", type=StepType.TRIGGER, order=0),
                Step(id="s4", label="Classify", order=1),
                Step(id="s3", label="Done", type=StepType.END, order=2),
            ],
        }
    )
    editor.results.append(EditResult(response="Added a classify step.", workflow=rewritten))
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert session.send("Add a classify step") is TurnOutcome.REPLIED

    stored = store.get(workflow.id)
    assert stored.name == "Email triage v2"
    assert [s.id for s in stored.ordered_steps()] == ["s1", "s4", "s3"]
    assert [(m.sender, m.text) for m in stored.conversation] == [
        ("user", "Add a classify step"),
        ("system", "Added a classify step."),
    ]


def test_reply_without_workflow_leaves_steps(
    store: WorkflowStore, workflow: Workflow, editor
) -> None:
    editor.results.append(EditResult(response="The workflow has three steps."))
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    session.send("How many steps?")

    assert store.get(workflow.id).steps == workflow.steps
    assert session.messages[-1].text == "The workflow has three steps."


def test_invalid_rewrite_is_not_stored(store: WorkflowStore, workflow: Workflow, editor) -> None:
    # Built without validation, as a careless editor might hand it back.
    broken = Workflow.model_construct(
        id=workflow.id,
        name="Broken",
        steps=[
            Step(id="a", label="A", order=0),
            Step(id="a", label="B", order=1),
        ],
    )
    editor.results.append(EditResult(response="Rewrote it.", workflow=broken))
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert session.send("Rewrite everything") is TurnOutcome.FAILED

    stored = store.get(workflow.id)
    assert stored.steps == workflow.steps
    assert stored.name == "Email triage"
    assert session.messages[-1].sender == "system"
    assert session.messages[-1].text.startswith(
        "Sorry, I encountered an error: Edit call returned an invalid workflow"
    )
    assert session.busy is False


def test_empty_response_is_a_failure(store: WorkflowStore, workflow: Workflow, editor) -> None:
    editor.results.append(EditResult(response="   "))
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert session.send("Change it") is TurnOutcome.FAILED
    assert session.messages[-1].text == error_text(Exception("Received empty response from AI"))
    assert session.busy is False


def test_call_failure_appends_error_text(
    store: WorkflowStore, workflow: Workflow, editor
) -> None:
    editor.results.append(ExternalCallFailure("upstream timed out"))
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert session.send("Change it") is TurnOutcome.FAILED
    assert session.messages[-1].text == (
        "Sorry, I encountered an error: upstream timed out. Please try again."
    )
    assert store.get(workflow.id).steps == workflow.steps


def test_empty_instruction_is_rejected(store: WorkflowStore, workflow: Workflow, editor) -> None:
    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert session.send("") is TurnOutcome.REJECTED_EMPTY
    assert editor.calls == []


def test_second_send_while_busy_is_rejected(store: WorkflowStore, workflow: Workflow) -> None:
    entered = threading.Event()
    release = threading.Event()
    instructions: list[str] = []

    class SlowEditor:
        def edit(
            self,
            workflow: Workflow,
            instruction: str,
            history: Sequence[ConversationMessage],
        ) -> EditResult:
            instructions.append(instruction)
            entered.set()
            release.wait(timeout=5)
            return EditResult(response="Done.")

    session = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=SlowEditor())
    outcomes: list[TurnOutcome] = []
    worker = threading.Thread(target=lambda: outcomes.append(session.send("first")))
    worker.start()
    assert entered.wait(timeout=5)

    assert session.busy is True
    assert session.send("second") is TurnOutcome.REJECTED_BUSY

    release.set()
    worker.join(timeout=5)
    assert outcomes == [TurnOutcome.REPLIED]
    assert instructions == ["first"]
    assert [m.text for m in store.get(workflow.id).conversation] == ["first", "Done."]


def test_first_message_names_a_draft(store: WorkflowStore, editor) -> None:
    draft = store.create_draft()
    editor.results.extend([EditResult(response="ok"), EditResult(response="ok")])
    session = WorkflowEditSession(store=store, workflow_id=draft.id, editor=editor)

    session.send("Route invoices to accounting")
    session.send("Then archive them")

    assert store.get(draft.id).name == "Route invoices to accounting"
    # History passed to the editor excludes the current instruction.
    assert editor.calls[0][2] == []
    assert [m.text for m in editor.calls[1][2]] == ["Route invoices to accounting", "ok"]


def test_conversation_survives_a_new_session(
    store: WorkflowStore, workflow: Workflow, editor
) -> None:
    editor.results.append(EditResult(response="hi"))
    WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor).send("hello")

    resumed = WorkflowEditSession(store=store, workflow_id=workflow.id, editor=editor)

    assert [m.text for m in resumed.messages] == ["hello", "hi"]
