"""Pydantic models returned to hosts by the orchestrator."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from socratic_dialogue.domain.decision import Decision
from socratic_dialogue.domain.dialogue import DialogueState, PrincipleVersion, StanceVersion
from socratic_dialogue.domain.enums import DialogueStage, Intent
from socratic_dialogue.models.usage import TokenUsage


class StageResult(BaseModel):
    """Outcome of one orchestrator invocation."""

    message: str = Field(..., description="Student-facing reply")
    state: DialogueState = Field(..., description="New state for the caller to persist")
    ended: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)
    decision: Optional[Decision] = Field(
        default=None,
        description="Classifier decision that drove the transition (not for persistence)",
    )
    applied_intent: Optional[Intent] = Field(
        default=None,
        description="Intent the transition took; differs from the decision's when a loop bound or guard overrode it",
    )

    model_config = {"frozen": True}


class ConversationSummary(BaseModel):
    """Read-only projection of a DialogueState for client display.

    Deliberately omits the raw conversation history.
    """

    topic: str
    stage: DialogueStage
    current_stance: Optional[StanceVersion]
    current_principle: Optional[PrincipleVersion]
    stance_versions: int
    principle_versions: int
    loop_count: int
    discussion_satisfied: bool
    summary: Optional[str]
    ended: bool

    model_config = {"frozen": True}

    @classmethod
    def from_state(cls, state: DialogueState) -> ConversationSummary:
        return cls(
            topic=state.topic,
            stage=state.stage,
            current_stance=state.current_stance,
            current_principle=state.current_principle,
            stance_versions=len(state.stance_history),
            principle_versions=len(state.principle_history),
            loop_count=state.loop_count,
            discussion_satisfied=state.discussion_satisfied,
            summary=state.summary,
            ended=state.is_ended,
        )
