"""PromptExecutor — the capability interface for running a Prompt.

The orchestrator only ever talks to the LLM through this contract, so tests
swap in a deterministic stub and hosts can plug in another provider.

Contract:
    execute(prompt) -> TextResult        when prompt.schema is None
    execute(prompt) -> StructuredResult  when prompt.schema is set; value is
                                         an instance of prompt.schema

Failures raise ProviderError (network / timeout / refusal) or
MalformedResponseError / DecisionParseError (unusable output).  An executor
never mutates anything it is given.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Union

from socratic_dialogue.builders.base import Prompt
from socratic_dialogue.domain.decision import Decision
from socratic_dialogue.errors import MalformedResponseError
from socratic_dialogue.models.usage import TokenUsage


@dataclass(frozen=True)
class TextResult:
    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class StructuredResult:
    value: Decision
    usage: TokenUsage = field(default_factory=TokenUsage)


ExecutionResult = Union[TextResult, StructuredResult]


class PromptExecutor(ABC):
    """Runs prompts against an LLM provider."""

    @abstractmethod
    async def execute(self, prompt: Prompt) -> ExecutionResult:
        """Run *prompt* and return free text or a validated structured value."""
        ...

    async def generate(self, prompt: Prompt) -> TextResult:
        """Run a free-text prompt."""
        if prompt.structured:
            raise ValueError("generate() called with a structured prompt")
        result = await self.execute(prompt)
        if not isinstance(result, TextResult):
            raise MalformedResponseError(
                f"Expected text result, got {type(result).__name__}"
            )
        return result

    async def classify(self, prompt: Prompt) -> StructuredResult:
        """Run a classification prompt and return its Decision."""
        if not prompt.structured:
            raise ValueError("classify() called with a prompt that has no schema")
        result = await self.execute(prompt)
        if not isinstance(result, StructuredResult):
            raise MalformedResponseError(
                f"Expected structured result, got {type(result).__name__}"
            )
        return result
