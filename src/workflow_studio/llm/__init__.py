"""LLM package initialization."""

from workflow_studio.llm.assistants import LLMBlueprintNegotiator, LLMWorkflowEditor
from workflow_studio.llm.factory import LLMFactory
from workflow_studio.llm.provider import LLMProvider

__all__ = [
    "LLMBlueprintNegotiator",
    "LLMFactory",
    "LLMProvider",
    "LLMWorkflowEditor",
]
