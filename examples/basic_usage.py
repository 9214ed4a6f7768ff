#!/usr/bin/env python3
"""Negotiate, activate and run a one-step workflow in process.

This drives the studio components directly:

* load settings from `.env` (the OpenAI key is read from `STUDIO_LLM_OPENAI_API_KEY`)
* negotiate requirements for an AI step until a blueprint exists
* activate the workflow, execute it and approve the review it raises

The requirements answer is passed as an argument.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from workflow_studio.config import StudioSettings
from workflow_studio.control_room.models import RosterEntry
from workflow_studio.logging import configure_logging
from workflow_studio.studio import Studio
from workflow_studio.workflow.models import Assignment, Step, StepType
from workflow_studio.workflow.negotiation import TurnOutcome


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a workflow end to end (programmatic example).")
    parser.add_argument("--agent", default="Ada", help="Name of the AI worker")
    parser.add_argument(
        "--requirements",
        required=True,
        help='What the AI step should do, e.g. "Reply to support emails within an hour"',
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = StudioSettings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    studio = Studio(settings)
    workflow = studio.store.create(
        name="Support inbox",
        steps=[
            Step(id="trigger", label="Email received", type=StepType.TRIGGER, order=0),
            Step(
                id="reply",
                label="Draft reply",
                order=1,
                assigned_to=Assignment(type="ai", agent_name=args.agent),
            ),
            Step(id="end", label="Done", type=StepType.END, order=2),
        ],
    )

    with studio.control_room as room:
        studio.roster.set_roster([RosterEntry(name=args.agent, type="ai", status="active")])

        session = studio.negotiation(workflow.id, "reply")
        if session.send(args.requirements) is not TurnOutcome.REPLIED:
            print(session.messages[-1].text)
            return 1
        print(session.messages[-1].text)
        session.mark_complete()

        readiness = studio.activate(workflow.id)
        if not readiness.is_ready:
            print("Not ready:", ", ".join(readiness.errors))
            return 1

        studio.execution.start(workflow.id)
        for item in room.snapshot().review:
            print(f"Approving {item.action.summary()!r} for {item.digital_worker_name}")
            room.approve(item.id)

        print(json.dumps(room.snapshot().to_json(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
