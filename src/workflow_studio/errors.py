"""Error taxonomy shared by the workflow and control-room packages.

Only `NotFound`, `NotReady` and `BlueprintRequired` are raised across
component boundaries. The remaining types describe failures that controllers
recover from locally; they exist so outcomes and log records carry a concrete error type.
"""

from __future__ import annotations


class StudioError(Exception):
    pass


class NotFound(StudioError):
    """An unknown workflow, step, worker or review item id."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmptyInput(StudioError):
    """A blank user message was submitted."""


class ExternalCallFailure(StudioError):
    """A negotiation or edit call raised, or returned something unusable."""


class EmptyResponse(ExternalCallFailure):
    """The edit call returned a blank response string."""


class BlueprintRequired(StudioError):
    """Marking a step complete was refused because no blueprint exists yet."""


class NotReady(StudioError):
    """Activation refused: one or more configurable steps are incomplete."""

    def __init__(self, errors: tuple[str, ...]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors
