"""Controlled enumerations for the dialogue domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for stage or intent fields.
"""

from __future__ import annotations

from enum import Enum


class DialogueStage(str, Enum):
    """Major phases of the Socratic exercise, in order."""

    AWAITING_START = "awaiting_start"
    ASKING_STANCE = "asking_stance"
    CASE_CHALLENGE = "case_challenge"
    PRINCIPLE_REASONING = "principle_reasoning"
    CLOSURE = "closure"
    ENDED = "ended"


class SubState(str, Enum):
    """Whether the last turn asked the student for disambiguation."""

    MAIN = "main"
    CLARIFY = "clarify"


class Intent(str, Enum):
    """Classified intents across all stages.

    Each stage only accepts its own subset; see STAGE_INTENTS in
    domain.decision.
    """

    TR_CLARIFY = "TR_CLARIFY"
    TR_V1_ESTABLISHED = "TR_V1_ESTABLISHED"
    TR_SCAFFOLD = "TR_SCAFFOLD"
    TR_CASE_COMPLETED = "TR_CASE_COMPLETED"
    TR_COMPLETE = "TR_COMPLETE"
    TR_NEXT_CASE = "TR_NEXT_CASE"
    TR_CONFIRM_END = "TR_CONFIRM_END"


class PrincipleClassification(str, Enum):
    """How strongly a stated principle generalises."""

    MODERATE = "moderate"
    EXTREME = "extreme"
    UNCLEAR = "unclear"


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    MODEL = "model"


# Sub-states each stage may legally be in.
LEGAL_SUB_STATES: dict[DialogueStage, frozenset[SubState]] = {
    DialogueStage.AWAITING_START: frozenset({SubState.MAIN}),
    DialogueStage.ASKING_STANCE: frozenset({SubState.MAIN, SubState.CLARIFY}),
    DialogueStage.CASE_CHALLENGE: frozenset({SubState.MAIN, SubState.CLARIFY}),
    DialogueStage.PRINCIPLE_REASONING: frozenset({SubState.MAIN, SubState.CLARIFY}),
    DialogueStage.CLOSURE: frozenset({SubState.MAIN, SubState.CLARIFY}),
    DialogueStage.ENDED: frozenset({SubState.MAIN}),
}
