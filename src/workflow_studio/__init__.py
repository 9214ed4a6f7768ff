"""Workflow Studio.

Operators define multi-step automation workflows, negotiate a blueprint of
allowed and forbidden actions for each AI-run step, activate a workflow once
every such step is configured, and triage live execution from a control room.
"""

__version__ = "0.1.0"

from workflow_studio.config import StudioSettings

__all__ = ["__version__", "StudioSettings"]
