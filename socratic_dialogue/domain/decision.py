"""Decision schemas — structured output of the per-stage classifiers.

A Decision is the only thing that drives a state transition.  Each stage
has its own model whose ``detected_intent`` is a Literal of that stage's
vocabulary, so a provider response carrying any other intent fails schema
validation instead of being coerced.

Decisions are never persisted; they live for a single turn.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from socratic_dialogue.domain.enums import DialogueStage, Intent, PrincipleClassification


# ── Base ─────────────────────────────────────────────────────────────────────

class Decision(BaseModel):
    """Fields shared by every stage classifier."""

    thought_process: str = Field(
        default="",
        description="Brief analysis of the student's logic, clarity and consistency",
    )
    detected_intent: str = Field(..., description="Trigger ID from the stage transition table")
    confidence_score: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @property
    def intent(self) -> Intent:
        return Intent(self.detected_intent)


# ── Stage 1: Asking stance ───────────────────────────────────────────────────

class StanceExtraction(BaseModel):
    stance: Optional[str] = Field(default=None, description="The student's position, if stated")
    reasoning: Optional[str] = Field(default=None, description="The reason given for it")

    model_config = {"frozen": True}


class AskingStanceDecision(Decision):
    detected_intent: Literal["TR_CLARIFY", "TR_V1_ESTABLISHED"]
    extracted_data: StanceExtraction = Field(default_factory=StanceExtraction)


# ── Stage 2: Case challenge ──────────────────────────────────────────────────

class CaseExtraction(BaseModel):
    stance: Optional[str] = Field(default=None, description="New or restated position")
    reasoning: Optional[str] = Field(default=None, description="New or restated reason")
    stance_changed: bool = Field(
        default=False,
        description="True if the student moved away from the previous stance",
    )
    ready_for_principle: bool = Field(
        default=False,
        description="True if the student is ready to state a general principle",
    )

    model_config = {"frozen": True}


class CaseChallengeDecision(Decision):
    detected_intent: Literal["TR_CLARIFY", "TR_SCAFFOLD", "TR_CASE_COMPLETED"]
    extracted_data: CaseExtraction = Field(default_factory=CaseExtraction)


# ── Stage 3: Principle reasoning ─────────────────────────────────────────────

class PrincipleExtraction(BaseModel):
    principle: Optional[str] = Field(default=None, description="The principle as stated")
    classification: PrincipleClassification = Field(
        default=PrincipleClassification.UNCLEAR,
        description="moderate, extreme or unclear",
    )
    tension: Optional[str] = Field(
        default=None,
        description="Conflict between the principle and the student's own intuitions",
    )

    model_config = {"frozen": True}


class PrincipleReasoningDecision(Decision):
    detected_intent: Literal["TR_CLARIFY", "TR_COMPLETE", "TR_NEXT_CASE", "TR_SCAFFOLD"]
    extracted_data: PrincipleExtraction = Field(default_factory=PrincipleExtraction)


# ── Stage 4: Closure ─────────────────────────────────────────────────────────

class ClosureExtraction(BaseModel):
    correction: Optional[str] = Field(
        default=None,
        description="What the student wants changed in the summary",
    )

    model_config = {"frozen": True}


class ClosureDecision(Decision):
    detected_intent: Literal["TR_CLARIFY", "TR_CONFIRM_END"]
    extracted_data: ClosureExtraction = Field(default_factory=ClosureExtraction)


# ── Vocabulary ───────────────────────────────────────────────────────────────

STAGE_DECISIONS: dict[DialogueStage, type[Decision]] = {
    DialogueStage.ASKING_STANCE: AskingStanceDecision,
    DialogueStage.CASE_CHALLENGE: CaseChallengeDecision,
    DialogueStage.PRINCIPLE_REASONING: PrincipleReasoningDecision,
    DialogueStage.CLOSURE: ClosureDecision,
}

STAGE_INTENTS: dict[DialogueStage, frozenset[Intent]] = {
    DialogueStage.ASKING_STANCE: frozenset({Intent.TR_CLARIFY, Intent.TR_V1_ESTABLISHED}),
    DialogueStage.CASE_CHALLENGE: frozenset(
        {Intent.TR_CLARIFY, Intent.TR_SCAFFOLD, Intent.TR_CASE_COMPLETED}
    ),
    DialogueStage.PRINCIPLE_REASONING: frozenset(
        {Intent.TR_CLARIFY, Intent.TR_COMPLETE, Intent.TR_NEXT_CASE, Intent.TR_SCAFFOLD}
    ),
    DialogueStage.CLOSURE: frozenset({Intent.TR_CLARIFY, Intent.TR_CONFIRM_END}),
}
