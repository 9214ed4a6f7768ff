from __future__ import annotations

import pytest
from pydantic import ValidationError

from workflow_studio.errors import NotFound, NotReady
from workflow_studio.workflow.models import (
    ConversationMessage,
    Requirements,
    Step,
    Workflow,
    WorkflowStatus,
    renumber_steps,
)
from workflow_studio.workflow.state_machine import IllegalTransitionError
from workflow_studio.workflow.store import (
    DEFAULT_WORKFLOW_NAME,
    WorkflowStore,
    derive_workflow_name,
)


def test_create_assigns_id_and_starts_as_draft(store: WorkflowStore) -> None:
    created = store.create(name="Invoices")

    assert created.id == "workflow-1"
    assert created.status is WorkflowStatus.DRAFT
    assert store.get(created.id).name == "Invoices"
    assert [w.id for w in store.list()] == ["workflow-1"]


def test_get_unknown_workflow_raises_not_found(store: WorkflowStore) -> None:
    with pytest.raises(NotFound, match="missing"):
        store.get("missing")


def test_get_step_unknown_step_raises_not_found(store: WorkflowStore, workflow: Workflow) -> None:
    assert store.get_step(workflow.id, "s2").label == "Draft reply"
    with pytest.raises(NotFound):
        store.get_step(workflow.id, "nope")


def test_returned_copies_do_not_alias_the_store(store: WorkflowStore, workflow: Workflow) -> None:
    copy = store.get(workflow.id)
    copy.steps[0].label = "Mutated"
    copy.name = "Mutated"

    fresh = store.get(workflow.id)
    assert fresh.name == "Email triage"
    assert fresh.steps[0].label == "New email"


def test_update_step_requirements_is_visible_to_next_reader(
    store: WorkflowStore, workflow: Workflow
) -> None:
    store.update_step_requirements(
        workflow.id, "s2", Requirements(is_complete=True, requirements_text="Be polite")
    )

    step = store.get_step(workflow.id, "s2")
    assert step.requirements is not None
    assert step.requirements.is_complete is True
    assert step.requirements.requirements_text == "Be polite"
    # Other steps untouched.
    assert store.get_step(workflow.id, "s1").requirements is None


def test_update_step_requirements_unknown_step(store: WorkflowStore, workflow: Workflow) -> None:
    with pytest.raises(NotFound):
        store.update_step_requirements(workflow.id, "ghost", Requirements())


def test_update_rejects_duplicate_step_ids(store: WorkflowStore, workflow: Workflow) -> None:
    steps = [
        Step(id="a", label="One", order=0),
        Step(id="a", label="Two", order=1),
    ]
    with pytest.raises(ValidationError):
        store.update(workflow.id, steps=steps)

    assert [s.id for s in store.get(workflow.id).steps] == ["s1", "s2", "s3"]


def test_duplicate_orders_are_rejected_at_construction() -> None:
    with pytest.raises(ValidationError):
        Workflow(
            id="w",
            name="w",
            steps=[Step(id="a", label="A", order=0), Step(id="b", label="B", order=0)],
        )


def test_update_replaces_name_description_and_steps(
    store: WorkflowStore, workflow: Workflow
) -> None:
    updated = store.update(
        workflow.id,
        name="Renamed",
        description="Now shorter",
        steps=[Step(id="only", label="Only step", order=0)],
    )

    assert updated.name == "Renamed"
    assert updated.description == "Now shorter"
    assert [s.id for s in updated.steps] == ["only"]


def test_set_status_follows_transition_table(store: WorkflowStore, workflow: Workflow) -> None:
    store.update_step_requirements(workflow.id, "s2", Requirements(is_complete=True))

    assert store.set_status(workflow.id, WorkflowStatus.ACTIVE).status is WorkflowStatus.ACTIVE
    assert store.set_status(workflow.id, WorkflowStatus.PAUSED).status is WorkflowStatus.PAUSED
    assert store.set_status(workflow.id, WorkflowStatus.ACTIVE).status is WorkflowStatus.ACTIVE

    with pytest.raises(IllegalTransitionError):
        store.set_status(workflow.id, WorkflowStatus.DRAFT)
    assert store.get(workflow.id).status is WorkflowStatus.ACTIVE


def test_set_status_refuses_activation_while_not_ready(
    store: WorkflowStore, workflow: Workflow
) -> None:
    with pytest.raises(NotReady) as excinfo:
        store.set_status(workflow.id, WorkflowStatus.ACTIVE)

    assert excinfo.value.errors == ("Draft reply needs attention",)
    assert store.get(workflow.id).status is WorkflowStatus.DRAFT


def test_delete(store: WorkflowStore, workflow: Workflow) -> None:
    store.delete(workflow.id)
    assert store.list() == []
    with pytest.raises(NotFound):
        store.delete(workflow.id)


def test_create_draft_and_auto_name(store: WorkflowStore) -> None:
    draft = store.create_draft()
    assert draft.name == DEFAULT_WORKFLOW_NAME

    named = store.auto_name(draft.id, "  Triage   support\temails\nand more detail")
    assert named.name == "Triage support emails"

    # Only a still-default name is replaced.
    again = store.auto_name(draft.id, "Something else entirely")
    assert again.name == "Triage support emails"


def test_update_conversation_persists_messages(store: WorkflowStore, workflow: Workflow) -> None:
    store.update_conversation(
        workflow.id,
        [ConversationMessage(sender="user", text="hi"), ConversationMessage(sender="system", text="hello")],
    )
    assert [m.text for m in store.get(workflow.id).conversation] == ["hi", "hello"]


def test_derive_workflow_name_truncates_long_first_lines() -> None:
    name = derive_workflow_name("x" * 80)
    assert len(name) == 50
    assert name.endswith("...")
    assert derive_workflow_name("   ") == ""


def test_renumber_steps_keeps_relative_order() -> None:
    steps = [
        Step(id="c", label="C", order=30),
        Step(id="a", label="A", order=10),
        Step(id="b", label="B", order=20),
    ]
    renumbered = renumber_steps(steps)
    assert [(s.id, s.order) for s in renumbered] == [("a", 0), ("b", 1), ("c", 2)]
