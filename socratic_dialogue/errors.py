"""Error taxonomy for dialogue orchestration.

    DialogueError
    ├── ProviderError            network / timeout / provider refusal
    ├── MalformedResponseError   provider answered with unusable text
    │   └── DecisionParseError   structured output failed schema validation
    ├── IllegalIntentError       intent outside the stage's vocabulary
    ├── PreconditionError        call not valid for the current state
    └── TurnFailedError          a turn failed; carries the untouched state

Only ProviderError with transient=True is worth retrying by the caller.
"""

from __future__ import annotations

from typing import Any


class DialogueError(Exception):
    """Base class for all errors raised by the dialogue core."""


class ProviderError(DialogueError):
    """The LLM provider call failed before producing a response."""

    def __init__(self, message: str, *, transient: bool) -> None:
        self.transient = transient
        super().__init__(message)


class MalformedResponseError(DialogueError):
    """The provider responded but the text cannot be used."""

    def __init__(self, message: str, *, raw_text: str = "") -> None:
        self.raw_text = raw_text
        super().__init__(message)


class DecisionParseError(MalformedResponseError):
    """Structured output was not valid JSON or failed schema validation."""


class IllegalIntentError(DialogueError):
    """A decision carried an intent the current stage does not accept."""

    def __init__(self, stage: Any, intent: str, allowed: list[str]) -> None:
        self.stage = stage
        self.intent = intent
        self.allowed = allowed
        super().__init__(
            f"Intent '{intent}' is not legal in stage '{getattr(stage, 'value', stage)}' "
            f"(allowed: {', '.join(allowed)})"
        )


class PreconditionError(DialogueError):
    """An entry point was called on a state that does not permit it."""


class TurnFailedError(DialogueError):
    """A turn could not be completed; no transition was applied.

    Attributes:
        stage: Stage of the input state.
        sub_state: Sub-state of the input state.
        decision: The classifier decision, if classification succeeded.
        state: The input DialogueState, unchanged.
        cause: The underlying error.
    """

    def __init__(
        self,
        *,
        stage: Any,
        sub_state: Any,
        state: Any,
        cause: DialogueError,
        decision: Any = None,
    ) -> None:
        self.stage = stage
        self.sub_state = sub_state
        self.state = state
        self.cause = cause
        self.decision = decision
        super().__init__(
            f"Turn failed in {getattr(stage, 'value', stage)}/"
            f"{getattr(sub_state, 'value', sub_state)}: {cause}"
        )

    @property
    def retryable(self) -> bool:
        """True when resubmitting the same input may succeed."""
        return isinstance(self.cause, ProviderError) and self.cause.transient
