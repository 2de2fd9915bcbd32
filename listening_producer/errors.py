"""Error taxonomy for the generation pipeline."""

from __future__ import annotations

FAILURE_KIND_QUOTA = "quota"
FAILURE_KIND_GENERIC = "generic"


class PipelineError(RuntimeError):
    """Base class for every failure the orchestrator knows how to surface."""


class PayloadValidationError(PipelineError):
    """Generation payload violated a rule. Never retried automatically."""

    def __init__(self, message: str, *, rule: str, field: str | None = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.field = field


class ResponseParseError(PayloadValidationError):
    """No JSON object found in a generation response, or it did not parse."""

    def __init__(self, message: str) -> None:
        super().__init__(message, rule="json")


class ContentGenerationError(PipelineError):
    pass


class SynthesisError(PipelineError):
    def __init__(self, message: str, *, kind: str = FAILURE_KIND_GENERIC, backend: str = "") -> None:
        super().__init__(message)
        self.kind = str(kind or FAILURE_KIND_GENERIC).strip().lower()
        self.backend = backend

    @property
    def is_quota(self) -> bool:
        return self.kind == FAILURE_KIND_QUOTA


class PersistenceError(PipelineError):
    pass


class InvalidTransitionError(PipelineError):
    def __init__(self, stage: str, action: str) -> None:
        super().__init__(f"Action '{action}' is not allowed from stage '{stage}'")
        self.stage = stage
        self.action = action
