"""LLM-backed implementations of the negotiation and edit calls."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from workflow_studio.errors import ExternalCallFailure
from workflow_studio.llm.provider import LLMProvider
from workflow_studio.workflow.editing import EditResult
from workflow_studio.workflow.models import (
    Blueprint,
    ConversationMessage,
    Step,
    StepType,
    Workflow,
    renumber_steps,
)
from workflow_studio.workflow.negotiation import NegotiationResult

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the outermost ``{...}`` in ``text`` parsed as JSON, or None if absent.

    Raises:
        ExternalCallFailure: if an object is present but is not valid JSON.
    """

    match = _JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExternalCallFailure(f"Assistant returned malformed JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExternalCallFailure("Assistant returned JSON that is not an object")
    return data


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def render_transcript(messages: Sequence[ConversationMessage]) -> str:
    return "\n".join(
        f"{'User' if m.sender == 'user' else 'Assistant'}: {m.text}" for m in messages
    )


_TRIGGER_GUIDANCE = """This is a TRIGGER step: the only step that starts the workflow.
- greenList: conditions that must hold for the trigger to fire (e.g. "email received", "every 1 minute").
- redList: exceptions that block the trigger (e.g. "don't trigger on weekends").
- Outstanding questions should focus on timing, conditions and frequency."""

_END_GUIDANCE = """This is an END step.
- greenList: completion criteria that must be met for the workflow to finish successfully.
- redList: exceptions that prevent successful completion."""

_ACTION_GUIDANCE = """Work strategically:
1. Compare what you know with what you still need.
2. List outstanding questions for the gaps, most important first.
3. From the answers so far, infer greenList (allowed actions) and redList (forbidden actions).
It is fine for the lists to be partial while questions remain open."""

_NEGOTIATION_FORMAT = """Return raw JSON only, no markdown:
{
  "requirementsText": "Description of requirements",
  "blueprint": {
    "greenList": ["..."],
    "redList": ["..."],
    "outstandingQuestions": ["..."]
  },
  "customRequirements": ["..."]
}"""


def _guidance_for(step_type: StepType) -> str:
    if step_type is StepType.TRIGGER:
        return _TRIGGER_GUIDANCE
    if step_type is StepType.END:
        return _END_GUIDANCE
    return _ACTION_GUIDANCE


class LLMBlueprintNegotiator:
    """Turns a step and its transcript into requirements text and a blueprint."""

    def __init__(self, provider: LLMProvider, *, max_tokens: int | None = 1200) -> None:
        self._provider = provider
        self._max_tokens = max_tokens

    def build_messages(
        self, step: Step, transcript: Sequence[ConversationMessage]
    ) -> list[dict[str, str]]:
        system = (
            f'You are helping gather requirements for a workflow step: "{step.label}"\n'
            f"STEP TYPE: {step.type.value}\n\n"
            f"{_guidance_for(step.type)}\n\n"
            "Extract the requirements text, outstanding questions, greenList, redList and "
            "custom requirements from the conversation.\n\n"
            f"{_NEGOTIATION_FORMAT}"
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": f"Conversation:\n{render_transcript(transcript)}"},
        ]

    def negotiate(
        self, step: Step, transcript: Sequence[ConversationMessage]
    ) -> NegotiationResult:
        raw = self._provider.chat(self.build_messages(step, transcript), max_tokens=self._max_tokens)
        data = extract_json_object(raw)
        if data is None:
            raise ExternalCallFailure("Failed to parse requirements")

        blueprint_raw = data.get("blueprint")
        blueprint_data = blueprint_raw if isinstance(blueprint_raw, Mapping) else {}
        text = data.get("requirementsText")
        result = NegotiationResult(
            requirements_text=text if isinstance(text, str) else "",
            blueprint=Blueprint(
                green_list=_str_list(blueprint_data.get("greenList")),
                red_list=_str_list(blueprint_data.get("redList")),
                outstanding_questions=_str_list(blueprint_data.get("outstandingQuestions")),
            ),
            custom_requirements=tuple(_str_list(data.get("customRequirements"))),
        )
        logger.debug(
            "Blueprint negotiated",
            extra={
                "step_id": step.id,
                "allowed": len(result.blueprint.green_list),
                "restricted": len(result.blueprint.red_list),
            },
        )
        return result


_EDIT_SYSTEM_PROMPT = """You help an operator design an automation workflow.
Answer the operator conversationally. If the request changes the workflow, also
return the complete rewritten workflow.

Return raw JSON only, no markdown:
{
  "response": "What you say to the operator",
  "workflow": null | {
    "name": "Workflow name",
    "description": "Short description",
    "steps": [
      {"id": "step-1", "label": "...", "type": "trigger|action|decision|end", "order": 0,
       "assignedTo": {"type": "ai|human", "agentName": "..."}}
    ]
  }
}
Use "trigger" for the first step and "end" for the last. Orders start at 0 and
must be distinct. Keep the ids of steps you do not change."""


def _workflow_brief(workflow: Workflow) -> dict[str, object]:
    return {
        "name": workflow.name,
        "description": workflow.description,
        "steps": [
            {
                "id": s.id,
                "label": s.label,
                "type": s.type.value,
                "order": s.order,
                "assignedTo": (
                    {"type": s.assigned_to.type, "agentName": s.assigned_to.agent_name}
                    if s.assigned_to
                    else None
                ),
            }
            for s in workflow.ordered_steps()
        ],
    }


def _assignment(raw: object) -> dict[str, object] | None:
    if not isinstance(raw, Mapping) or raw.get("type") not in ("ai", "human"):
        return None
    return {
        "type": raw["type"],
        "agent_name": raw.get("agentName"),
        "human_id": raw.get("humanId"),
        "human_name": raw.get("humanName"),
    }


def workflow_from_reply(current: Workflow, data: Mapping[str, Any]) -> Workflow:
    """Merge a rewritten workflow from the assistant into ``current``.

    Steps that keep their id keep their negotiated requirements. Orders are
    renumbered 0..n-1; steps with equal orders keep their list position.
    """

    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise ExternalCallFailure("Edit call returned a workflow without steps")

    existing = {s.id: s for s in current.steps}
    steps: list[dict[str, object]] = []
    for index, raw in enumerate(raw_steps):
        if not isinstance(raw, Mapping):
            raise ExternalCallFailure("Edit call returned a malformed step")
        step_id = str(raw.get("id") or f"step-{index + 1}")
        previous = existing.get(step_id)
        steps.append(
            {
                "id": step_id,
                "label": raw.get("label") or (previous.label if previous else f"Step {index + 1}"),
                "type": raw.get("type") or StepType.ACTION.value,
                "order": raw.get("order") if isinstance(raw.get("order"), int) else index,
                "assigned_to": _assignment(raw.get("assignedTo")),
                "requirements": previous.requirements if previous else None,
            }
        )

    name = data.get("name") or data.get("workflowName") or current.name
    description = data.get("description", current.description)
    try:
        # Mixed explicit and missing orders can collide; only relative order is kept.
        ordered = renumber_steps([Step.model_validate(s) for s in steps])
        return Workflow.model_validate(
            {**current.model_dump(), "name": name, "description": description, "steps": ordered}
        )
    except ValidationError as e:
        raise ExternalCallFailure(f"Edit call returned an invalid workflow: {e}") from e


class LLMWorkflowEditor:
    """Chat-driven workflow editing on top of an :class:`LLMProvider`."""

    def __init__(self, provider: LLMProvider, *, max_tokens: int | None = 1500) -> None:
        self._provider = provider
        self._max_tokens = max_tokens

    def build_messages(
        self,
        workflow: Workflow,
        instruction: str,
        history: Sequence[ConversationMessage],
    ) -> list[dict[str, str]]:
        messages = [
            {"role": "system", "content": _EDIT_SYSTEM_PROMPT},
            {
                "role": "system",
                "content": "Current workflow:\n"
                + json.dumps(_workflow_brief(workflow), ensure_ascii=False),
            },
        ]
        for m in history:
            messages.append(
                {"role": "user" if m.sender == "user" else "assistant", "content": m.text}
            )
        messages.append({"role": "user", "content": instruction})
        return messages

    def edit(
        self,
        workflow: Workflow,
        instruction: str,
        history: Sequence[ConversationMessage],
    ) -> EditResult:
        raw = self._provider.chat(
            self.build_messages(workflow, instruction, history), max_tokens=self._max_tokens
        )
        data = extract_json_object(raw)
        if data is None:
            # Plain prose: a reply with no structural change.
            return EditResult(response=raw.strip())

        response = data.get("response")
        response_text = response.strip() if isinstance(response, str) else ""
        workflow_raw = data.get("workflow")
        updated = (
            workflow_from_reply(workflow, workflow_raw)
            if isinstance(workflow_raw, Mapping)
            else None
        )
        return EditResult(response=response_text, workflow=updated)
