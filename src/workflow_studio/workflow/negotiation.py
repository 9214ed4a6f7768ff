"""Requirements Negotiation Controller.

One session per step. Each operator turn is appended to the transcript and the
whole transcript is handed to the negotiation call, which answers with updated
requirements text and a blueprint. Marking the requirements complete is always
an explicit operator action; a blueprint alone never completes a step.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from workflow_studio.errors import BlueprintRequired, EmptyInput, NotFound

from .models import Blueprint, ConversationMessage, Integrations, Requirements, Step
from .store import WorkflowStore

logger = logging.getLogger(__name__)

NEGOTIATION_ERROR_TEXT = "Sorry, I encountered an error. Please try again."


class TurnOutcome(str, Enum):
    REPLIED = "replied"
    FAILED = "failed"
    REJECTED_EMPTY = "rejected_empty"
    REJECTED_BUSY = "rejected_busy"


@dataclass(frozen=True, slots=True)
class NegotiationResult:
    requirements_text: str
    blueprint: Blueprint
    custom_requirements: tuple[str, ...] = ()


class BlueprintNegotiator(Protocol):
    """The external blueprint-synthesis call."""

    def negotiate(
        self, step: Step, transcript: Sequence[ConversationMessage]
    ) -> NegotiationResult: ...


def blueprint_summary(blueprint: Blueprint) -> str:
    return (
        "Requirements updated. Blueprint generated with "
        f"{len(blueprint.green_list)} allowed actions and "
        f"{len(blueprint.red_list)} restrictions."
    )


class NegotiationSession:
    def __init__(
        self,
        *,
        store: WorkflowStore,
        workflow_id: str,
        step_id: str,
        negotiator: BlueprintNegotiator,
        require_blueprint: bool = False,
        on_complete: Callable[[str, str], None] | None = None,
    ) -> None:
        self._store = store
        self._negotiator = negotiator
        self._require_blueprint = require_blueprint
        self._on_complete = on_complete
        self.workflow_id = workflow_id
        self.step_id = step_id

        # Resume from whatever was persisted for the step.
        stored = store.get_step(workflow_id, step_id).requirements
        self._synced: Requirements | None = stored
        existing = stored or Requirements()
        self._messages: list[ConversationMessage] = list(existing.chat_history)
        self.requirements_text: str = existing.requirements_text
        self.blueprint: Blueprint | None = existing.blueprint
        self.custom_requirements: list[str] = list(existing.custom_requirements)
        self._integrations: Integrations = existing.integrations.model_copy()
        self._marked_complete = existing.is_complete

        self._busy = False
        self._lock = threading.Lock()

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def marked_complete(self) -> bool:
        return self._marked_complete

    @property
    def integrations(self) -> Integrations:
        return self._integrations.model_copy()

    def is_stale(self) -> bool:
        """Whether the step's stored requirements changed since this session last synced."""

        try:
            stored = self._store.get_step(self.workflow_id, self.step_id).requirements
        except NotFound:
            return True
        return stored != self._synced

    def link_mailbox(self, linked: bool = True) -> None:
        self._integrations = self._integrations.model_copy(update={"gmail": linked})

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
        content = text.strip()
        if not content:
            logger.debug(
                "Negotiation turn rejected",
                extra={"step_id": self.step_id, "reason": EmptyInput.__name__},
            )
            return TurnOutcome.REJECTED_EMPTY
        if not self._claim():
            return TurnOutcome.REJECTED_BUSY

        try:
            step = self._store.get_step(self.workflow_id, self.step_id)
            self._messages.append(ConversationMessage(sender="user", text=content))
            transcript = list(self._messages)

            try:
                result = self._negotiator.negotiate(step, transcript)
            except Exception:
                logger.exception(
                    "Negotiation call failed",
                    extra={"workflow_id": self.workflow_id, "step_id": self.step_id},
                )
                self._messages.append(
                    ConversationMessage(sender="system", text=NEGOTIATION_ERROR_TEXT)
                )
                return TurnOutcome.FAILED

            self.requirements_text = result.requirements_text
            self.blueprint = result.blueprint
            if result.custom_requirements:
                self.custom_requirements = list(result.custom_requirements)
            self._messages.append(
                ConversationMessage(sender="system", text=blueprint_summary(result.blueprint))
            )
            return TurnOutcome.REPLIED
        finally:
            self._release()

    def mark_complete(self) -> Requirements:
        """Persist the negotiated requirements as complete and signal the caller."""

        if self.blueprint is None or self.blueprint.is_empty():
            if self._require_blueprint:
                raise BlueprintRequired(
                    f"Step {self.step_id} has no blueprint yet; keep negotiating first"
                )
            logger.warning(
                "Marking requirements complete without a blueprint",
                extra={"workflow_id": self.workflow_id, "step_id": self.step_id},
            )

        requirements = Requirements(
            is_complete=True,
            requirements_text=self.requirements_text,
            chat_history=list(self._messages),
            blueprint=self.blueprint or Blueprint(),
            integrations=self._integrations.model_copy(),
            custom_requirements=list(self.custom_requirements),
        )
        self._store.update_step_requirements(self.workflow_id, self.step_id, requirements)
        self._synced = requirements
        self._marked_complete = True
        logger.info(
            "Step requirements marked complete",
            extra={"workflow_id": self.workflow_id, "step_id": self.step_id},
        )

        if self._on_complete is not None:
            self._on_complete(self.workflow_id, self.step_id)
        return requirements
