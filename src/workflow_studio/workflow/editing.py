"""Workflow-Edit Controller.

A chat loop over a whole workflow: the operator asks for a change, the edit
call answers with a response and, optionally, a rewritten workflow. Only a
rewrite that passes model validation is written back to the store.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from workflow_studio.errors import EmptyInput, EmptyResponse, ExternalCallFailure

from .models import ConversationMessage, Workflow
from .negotiation import TurnOutcome
from .store import WorkflowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EditResult:
    response: str
    workflow: Workflow | None = None


class WorkflowEditor(Protocol):
    """The external chat-driven edit call."""

    def edit(
        self,
        workflow: Workflow,
        instruction: str,
        history: Sequence[ConversationMessage],
    ) -> EditResult: ...


def error_text(error: Exception) -> str:
    return f"Sorry, I encountered an error: {error}. Please try again."


def _validated(candidate: Workflow) -> Workflow:
    try:
        return Workflow.model_validate(candidate.model_dump())
    except ValidationError as e:
        raise ExternalCallFailure(f"Edit call returned an invalid workflow: {e}") from e


class WorkflowEditSession:
    def __init__(
        self,
        *,
        store: WorkflowStore,
        workflow_id: str,
        editor: WorkflowEditor,
    ) -> None:
        self._store = store
        self._editor = editor
        self.workflow_id = workflow_id
        self._messages: list[ConversationMessage] = list(store.get(workflow_id).conversation)
        self._busy = False
        self._lock = threading.Lock()

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self._busy

    def _append(self, message: ConversationMessage) -> None:
        self._messages.append(message)
        self._store.update_conversation(self.workflow_id, self._messages)

    def _claim(self) -> bool:
        with self._lock:
            if self._busy:
                return False
            self._busy = True
            return True

    def _release(self) -> None:
        with self._lock:
            self._busy = False

    def send(self, text: str) -> TurnOutcome:
        instruction = text.strip()
        if not instruction:
            logger.debug(
                "Edit turn rejected",
                extra={"workflow_id": self.workflow_id, "reason": EmptyInput.__name__},
            )
            return TurnOutcome.REJECTED_EMPTY
        if not self._claim():
            return TurnOutcome.REJECTED_BUSY

        try:
            workflow = self._store.get(self.workflow_id)
            history = list(self._messages)
            if not history:
                self._store.auto_name(self.workflow_id, instruction)
            self._append(ConversationMessage(sender="user", text=instruction))

            try:
                result = self._editor.edit(workflow, instruction, history)
                if not result.response or not result.response.strip():
                    raise EmptyResponse("Received empty response from AI")
                updated = _validated(result.workflow) if result.workflow is not None else None
            except Exception as e:
                logger.exception(
                    "Workflow edit call failed",
                    extra={"workflow_id": self.workflow_id, "error_type": type(e).__name__},
                )
                self._append(ConversationMessage(sender="system", text=error_text(e)))
                return TurnOutcome.FAILED

            if updated is not None:
                self._store.update(
                    self.workflow_id,
                    name=updated.name,
                    description=updated.description,
                    steps=updated.steps,
                )
                logger.info(
                    "Workflow rewritten from chat",
                    extra={"workflow_id": self.workflow_id, "steps": len(updated.steps)},
                )
            self._append(ConversationMessage(sender="system", text=result.response))
            return TurnOutcome.REPLIED
        finally:
            self._release()
