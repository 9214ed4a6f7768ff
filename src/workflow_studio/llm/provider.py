"""LLM provider interface used by the negotiation and edit assistants."""

from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """A text-completion backend.

    The assistants in :mod:`workflow_studio.llm.assistants` only talk to this
    interface, so tests can drive them with a canned provider.
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Complete a single prompt and return the text."""

    @abstractmethod
    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Answer a chat transcript.

        Args:
            messages: ``{"role": ..., "content": ...}`` dicts, oldest first.
            max_tokens: Upper bound on the reply length, or None for the backend default.
            temperature: Overrides the configured sampling temperature.

        Returns:
            The assistant's reply text (empty string if the backend returned none).
        """
