"""Configuration for the workflow studio.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Settings are built once by the composition root and passed down. Library code
does not read the environment on its own.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Configuration for the LLM backing the negotiation and edit calls."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the OpenAI model",
    )

    model_config = SettingsConfigDict(
        env_prefix="STUDIO_LLM_",
        env_file=".env",
        extra="ignore",
    )


class StudioSettings(BaseSettings):
    """Settings for the studio process.

    Environment variables use the ``STUDIO_`` prefix, e.g. ``STUDIO_LOG_LEVEL``.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `StudioSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    log_json: bool = Field(
        default=True,
        description="Emit JSON log lines instead of plain text",
    )

    standby_workflow: str = Field(
        default="standby",
        description="Workflow shown for an active worker that has no assigned workflow",
    )
    default_worker_name: str = Field(
        default="default",
        description="Worker name recorded when a control-room event names no worker",
    )

    require_blueprint_on_complete: bool = Field(
        default=False,
        description=(
            "If true, a step's requirements can only be marked complete once the "
            "negotiation has produced a blueprint."
        ),
    )

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description="Comma-separated list of allowed CORS origins.",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="STUDIO_",
        env_file=".env",
        extra="ignore",
    )

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
