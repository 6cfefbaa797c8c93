"""Abstract base for stage prompt builders.

A stage builder turns the conversation so far plus one typed input record
into a Prompt for the PromptExecutor.

Architectural rules:
    1. Builders never see the DialogueState; the orchestrator hands them
       exactly the fields they need as a frozen input record.
    2. build() is pure: same turns and inputs give the same Prompt.
    3. Each builder has exactly one kind.  GENERATION and REFINEMENT
       builders produce free text; CLASSIFICATION builders carry the
       stage's Decision schema.
    4. A builder rejects input records of the wrong type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Sequence

from pydantic import BaseModel

from socratic_dialogue.domain.decision import Decision
from socratic_dialogue.domain.dialogue import Turn
from socratic_dialogue.domain.enums import DialogueStage, Role

START_PLACEHOLDER = "[please start]"
QUESTION_MARKS = ("?", "？")


class BuilderKind(str, Enum):
    GENERATION = "generation"
    CLASSIFICATION = "classification"
    REFINEMENT = "refinement"


class BuilderPurpose(str, Enum):
    """What a builder's output is used for within its stage."""

    OPENING = "opening"
    DECISION = "decision"
    CLARIFY = "clarify"
    CHALLENGE = "challenge"
    SCAFFOLD = "scaffold"
    PRINCIPLE = "principle"
    REFINE = "refine"
    SUMMARY = "summary"
    REVISE = "revise"
    FAREWELL = "farewell"


# ── Prompt ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Prompt:
    """A system instruction, the turns to send, and an optional output schema."""

    system_instruction: str
    turns: tuple[Turn, ...]
    schema: Optional[type[Decision]] = None

    @property
    def structured(self) -> bool:
        return self.schema is not None


def ensure_user_turn_last(turns: Sequence[Turn]) -> tuple[Turn, ...]:
    """Providers expect the final turn to come from the user."""
    turns = tuple(turns)
    if not turns or turns[-1].role != Role.USER:
        return turns + (Turn(role=Role.USER, text=START_PLACEHOLDER),)
    return turns


# ── Response convention ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class StageResponse:
    """Student-facing text split into a main message and one question."""

    response_message: str
    concise_question: str


def split_stage_response(text: str) -> StageResponse:
    """Split generated text into a message and its closing question.

    The question is the paragraph after the last blank line, and only when
    it ends with a question mark.  Anything else (a farewell, a summary
    with no question) is kept whole as the message.
    """
    text = text.strip()
    head, sep, tail = text.rpartition("\n\n")
    if not sep:
        head, tail = "", text
    if tail.strip().endswith(QUESTION_MARKS):
        return StageResponse(response_message=head.strip(), concise_question=tail.strip())
    return StageResponse(response_message=text, concise_question="")


def format_stage_response(response: StageResponse) -> str:
    """Join message and question with a blank line for display."""
    parts = [p for p in (response.response_message, response.concise_question) if p]
    return "\n\n".join(parts)


# ── Builders ─────────────────────────────────────────────────────────────────

class StageBuilder(ABC):
    """Base class for all prompt builders."""

    kind: ClassVar[BuilderKind]
    stage: ClassVar[DialogueStage]
    purpose: ClassVar[BuilderPurpose]
    input_type: ClassVar[type[BaseModel]]

    def build(self, turns: Sequence[Turn], inputs: BaseModel) -> Prompt:
        """Create the Prompt for *inputs* over the conversation *turns*.

        Raises:
            TypeError: If *inputs* is not this builder's input record type.
        """
        if not isinstance(inputs, self.input_type):
            raise TypeError(
                f"{type(self).__name__} expects {self.input_type.__name__}, "
                f"got {type(inputs).__name__}"
            )
        return Prompt(
            system_instruction=self.render(inputs),
            turns=ensure_user_turn_last(turns),
            schema=self.output_schema,
        )

    @property
    def output_schema(self) -> Optional[type[Decision]]:
        return None

    @abstractmethod
    def render(self, inputs: BaseModel) -> str:
        """Produce the system instruction for *inputs*."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.stage.value}/{self.purpose.value})"


class GenerationBuilder(StageBuilder):
    """Produces student-facing text (message, blank line, question)."""

    kind = BuilderKind.GENERATION


class RefinementBuilder(StageBuilder):
    """Revises a prior artifact and asks the student to confirm it."""

    kind = BuilderKind.REFINEMENT


class ClassificationBuilder(StageBuilder):
    """Produces a schema-constrained Decision for its stage."""

    kind = BuilderKind.CLASSIFICATION
    purpose = BuilderPurpose.DECISION
    decision_type: ClassVar[type[Decision]]

    @property
    def output_schema(self) -> Optional[type[Decision]]:
        return self.decision_type
