"""Transition table — pure, deterministic stage transitions.

Given a DialogueState and a classifier Decision, ``apply_decision`` returns
the next state and the single generation step (FollowUp) needed to produce
the student-facing reply.  Nothing here performs I/O; the same
(state, decision) pair always yields the same Transition.

Transition rules per stage:

    ASKING_STANCE
        TR_CLARIFY          → CLARIFY, re-ask for a stance
        TR_V1_ESTABLISHED   → stance V1, CASE_CHALLENGE/MAIN, first case
    CASE_CHALLENGE
        TR_CLARIFY          → CLARIFY, re-ask within the same case
        TR_SCAFFOLD         → point out the stance shift, loop unchanged
        TR_CASE_COMPLETED   → loop += 1; PRINCIPLE_REASONING at max_loops
                              or when the student is ready, else next case
    PRINCIPLE_REASONING
        TR_CLARIFY          → CLARIFY, re-ask for a sharper principle
        TR_SCAFFOLD         → refine the principle, no new case
        TR_NEXT_CASE        → tentative principle, CASE_CHALLENGE with a
                              case that pressure-tests it
        TR_COMPLETE         → principle accepted; CLOSURE with a draft
                              summary once min_loops_for_closure is met,
                              otherwise back to CASE_CHALLENGE
    CLOSURE
        TR_CLARIFY          → revise the draft summary, stay in CLOSURE
        TR_CONFIRM_END      → summary accepted, ENDED, farewell

A stance version is appended whenever a CASE_CHALLENGE decision reports a
changed stance that differs from the current one.

The only cross-stage move back is PRINCIPLE_REASONING → CASE_CHALLENGE,
bounded by max_loops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from socratic_dialogue.builders.base import BuilderKind, BuilderPurpose, StageResponse
from socratic_dialogue.builders.stage1_asking_stance import (
    OpeningInput,
    StanceClarifyInput,
    StanceClassifierInput,
)
from socratic_dialogue.builders.stage2_case_challenge import (
    CaseClarifyInput,
    CaseClassifierInput,
    CaseScaffoldInput,
    ChallengeInput,
)
from socratic_dialogue.builders.stage3_principle_reasoning import (
    PrincipleClarifyInput,
    PrincipleClassifierInput,
    PrincipleQuestionInput,
    PrincipleRefinementInput,
)
from socratic_dialogue.builders.stage4_closure import (
    ClosureClassifierInput,
    FarewellInput,
    SummaryInput,
    SummaryRevisionInput,
)
from socratic_dialogue.config import Settings, settings
from socratic_dialogue.domain.decision import (
    STAGE_DECISIONS,
    STAGE_INTENTS,
    AskingStanceDecision,
    CaseChallengeDecision,
    ClosureDecision,
    Decision,
    PrincipleReasoningDecision,
)
from socratic_dialogue.domain.dialogue import (
    DialogueState,
    format_principle_history,
    format_stance_history,
)
from socratic_dialogue.domain.enums import (
    DialogueStage,
    Intent,
    PrincipleClassification,
    SubState,
)
from socratic_dialogue.errors import IllegalIntentError, PreconditionError

logger = logging.getLogger(__name__)


# ── Configuration ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OrchestratorConfig:
    """Dialogue bounds handed to the orchestrator at construction."""

    max_loops: int = 5
    min_loops_for_closure: int = 1

    def __post_init__(self) -> None:
        if self.max_loops < 1:
            raise ValueError("max_loops must be at least 1")
        if self.min_loops_for_closure < 0:
            raise ValueError("min_loops_for_closure must not be negative")
        if self.min_loops_for_closure > self.max_loops:
            raise ValueError("min_loops_for_closure must not exceed max_loops")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> OrchestratorConfig:
        source = source or settings
        return cls(
            max_loops=source.max_loops,
            min_loops_for_closure=source.min_loops_for_closure,
        )


# ── Transition records ───────────────────────────────────────────────────────

class Capture(str, Enum):
    """Where generated text is stored on the state, besides the history."""

    NONE = "none"
    CASE = "current_case"
    DRAFT_PRINCIPLE = "draft_principle"
    DRAFT_SUMMARY = "draft_summary"


@dataclass(frozen=True)
class FollowUp:
    """The generation step that produces the reply for a transition."""

    stage: DialogueStage
    purpose: BuilderPurpose
    inputs: BaseModel
    kind: BuilderKind = BuilderKind.GENERATION
    capture: Capture = Capture.NONE


@dataclass(frozen=True)
class Transition:
    """Next state plus the reply to generate.

    ``applied_intent`` differs from the decision's intent when a bound or
    tie-break rule redirected it.
    """

    state: DialogueState
    follow_up: FollowUp
    applied_intent: Optional[Intent] = None


# ── Preconditions ────────────────────────────────────────────────────────────

def check_start_preconditions(state: DialogueState) -> None:
    if state.stage != DialogueStage.AWAITING_START:
        raise PreconditionError(
            f"Conversation already started (stage '{state.stage.value}')"
        )


def check_input_preconditions(state: DialogueState, student_message: str) -> None:
    """Reject a student turn the current state cannot accept.

    Raises:
        PreconditionError: Before any provider call is made.
    """
    if state.stage == DialogueStage.AWAITING_START:
        raise PreconditionError("Conversation has not been started")
    if state.stage == DialogueStage.ENDED:
        raise PreconditionError("Conversation has ended")
    if not student_message or not student_message.strip():
        raise PreconditionError("Student message must not be empty")
    if (
        state.stage in (DialogueStage.CASE_CHALLENGE, DialogueStage.PRINCIPLE_REASONING)
        and state.current_stance is None
    ):
        raise PreconditionError(f"Stage '{state.stage.value}' requires a current stance")
    if state.stage == DialogueStage.CLOSURE and not state.draft_summary:
        raise PreconditionError("Closure requires a draft summary")


# ── Opening ──────────────────────────────────────────────────────────────────

def opening_transition(state: DialogueState, topic_context: str = "") -> Transition:
    check_start_preconditions(state)
    return Transition(
        state=state.moved_to(DialogueStage.ASKING_STANCE),
        follow_up=FollowUp(
            stage=DialogueStage.ASKING_STANCE,
            purpose=BuilderPurpose.OPENING,
            inputs=OpeningInput(topic=state.topic, topic_context=topic_context),
        ),
    )


# ── Classifier inputs ────────────────────────────────────────────────────────

def classifier_inputs(
    state: DialogueState,
    student_message: str,
    config: OrchestratorConfig,
) -> BaseModel:
    """Assemble the input record for the current stage's classifier."""
    awaiting = state.sub_state == SubState.CLARIFY
    stage = state.stage

    if stage == DialogueStage.ASKING_STANCE:
        return StanceClassifierInput(
            topic=state.topic,
            current_question=state.last_model_text(),
            student_message=student_message,
            awaiting_clarification=awaiting,
        )

    stance = state.current_stance
    if stage == DialogueStage.CASE_CHALLENGE:
        return CaseClassifierInput(
            topic=state.topic,
            current_stance=stance.position,
            current_reason=stance.reason,
            case_description=state.current_case or "",
            student_message=student_message,
            loop_count=state.loop_count,
            awaiting_clarification=awaiting,
        )

    if stage == DialogueStage.PRINCIPLE_REASONING:
        previous = state.current_principle
        return PrincipleClassifierInput(
            topic=state.topic,
            current_stance=stance.position,
            student_message=student_message,
            previous_principle=previous.statement if previous else None,
            proposed_revision=state.draft_principle,
            loop_count=state.loop_count,
            min_loops_for_closure=config.min_loops_for_closure,
            awaiting_clarification=awaiting,
        )

    if stage == DialogueStage.CLOSURE:
        return ClosureClassifierInput(
            topic=state.topic,
            draft_summary=state.draft_summary or "",
            student_message=student_message,
        )

    raise PreconditionError(f"Stage '{stage.value}' has no classifier")


# ── Follow-up helpers ────────────────────────────────────────────────────────

def _challenge(
    state: DialogueState,
    topic_context: str,
    config: OrchestratorConfig,
    principle: Optional[str] = None,
) -> FollowUp:
    stance = state.current_stance
    return FollowUp(
        stage=DialogueStage.CASE_CHALLENGE,
        purpose=BuilderPurpose.CHALLENGE,
        inputs=ChallengeInput(
            topic=state.topic,
            topic_context=topic_context,
            current_stance=stance.position,
            current_reason=stance.reason,
            loop_count=state.loop_count,
            max_loops=config.max_loops,
            previous_case=state.current_case,
            principle_under_test=principle,
        ),
        capture=Capture.CASE,
    )


def _principle_question(state: DialogueState) -> FollowUp:
    stance = state.current_stance
    return FollowUp(
        stage=DialogueStage.PRINCIPLE_REASONING,
        purpose=BuilderPurpose.PRINCIPLE,
        inputs=PrincipleQuestionInput(
            topic=state.topic,
            current_stance=stance.position,
            current_reason=stance.reason,
            stance_history=format_stance_history(state.stance_history),
        ),
    )


def _summary(state: DialogueState) -> FollowUp:
    stance = state.current_stance
    principle = state.current_principle
    return FollowUp(
        stage=DialogueStage.CLOSURE,
        purpose=BuilderPurpose.SUMMARY,
        inputs=SummaryInput(
            topic=state.topic,
            stance_history=format_stance_history(state.stance_history),
            final_stance=stance.position,
            final_reason=stance.reason,
            principle_history=format_principle_history(state.principle_history),
            final_principle=principle.statement if principle else "",
        ),
        capture=Capture.DRAFT_SUMMARY,
    )


# ── Stage handlers ───────────────────────────────────────────────────────────

def _asking_stance(
    state: DialogueState,
    decision: AskingStanceDecision,
    student_message: str,
    topic_context: str,
    config: OrchestratorConfig,
) -> Transition:
    intent = decision.intent

    if intent == Intent.TR_CLARIFY:
        return Transition(
            state=state.moved_to(DialogueStage.ASKING_STANCE, SubState.CLARIFY),
            follow_up=FollowUp(
                stage=DialogueStage.ASKING_STANCE,
                purpose=BuilderPurpose.CLARIFY,
                inputs=StanceClarifyInput(topic=state.topic, student_message=student_message),
            ),
            applied_intent=intent,
        )

    # TR_V1_ESTABLISHED
    extracted = decision.extracted_data
    position = (extracted.stance or "").strip() or student_message.strip()
    reason = (extracted.reasoning or "").strip()
    new_state = state.with_stance(position, reason).moved_to(DialogueStage.CASE_CHALLENGE)
    return Transition(
        state=new_state,
        follow_up=_challenge(new_state, topic_context, config),
        applied_intent=intent,
    )


def _case_challenge(
    state: DialogueState,
    decision: CaseChallengeDecision,
    student_message: str,
    topic_context: str,
    config: OrchestratorConfig,
) -> Transition:
    intent = decision.intent
    extracted = decision.extracted_data
    previous = state.current_stance

    new_position = (extracted.stance or "").strip()
    if extracted.stance_changed and new_position and new_position != previous.position:
        reason = (extracted.reasoning or "").strip() or previous.reason
        state = state.with_stance(new_position, reason)

    if intent == Intent.TR_CLARIFY:
        return Transition(
            state=state.moved_to(DialogueStage.CASE_CHALLENGE, SubState.CLARIFY),
            follow_up=FollowUp(
                stage=DialogueStage.CASE_CHALLENGE,
                purpose=BuilderPurpose.CLARIFY,
                inputs=CaseClarifyInput(
                    topic=state.topic,
                    case_description=state.current_case or "",
                    student_message=student_message,
                ),
            ),
            applied_intent=intent,
        )

    if intent == Intent.TR_SCAFFOLD:
        return Transition(
            state=state.moved_to(DialogueStage.CASE_CHALLENGE),
            follow_up=FollowUp(
                stage=DialogueStage.CASE_CHALLENGE,
                purpose=BuilderPurpose.SCAFFOLD,
                inputs=CaseScaffoldInput(
                    topic=state.topic,
                    original_stance=previous.position,
                    original_reason=previous.reason,
                    shifted_stance=new_position or None,
                    student_message=student_message,
                ),
            ),
            applied_intent=intent,
        )

    # TR_CASE_COMPLETED
    loop_count = min(state.loop_count + 1, config.max_loops)
    satisfied = state.discussion_satisfied or loop_count >= config.min_loops_for_closure

    if loop_count >= config.max_loops or extracted.ready_for_principle:
        new_state = state.moved_to(
            DialogueStage.PRINCIPLE_REASONING,
            loop_count=loop_count,
            discussion_satisfied=satisfied,
        )
        return Transition(
            state=new_state,
            follow_up=_principle_question(new_state),
            applied_intent=intent,
        )

    new_state = state.moved_to(
        DialogueStage.CASE_CHALLENGE,
        loop_count=loop_count,
        discussion_satisfied=satisfied,
    )
    return Transition(
        state=new_state,
        follow_up=_challenge(new_state, topic_context, config),
        applied_intent=intent,
    )


def _effective_principle_intent(
    state: DialogueState,
    intent: Intent,
    classification: PrincipleClassification,
    config: OrchestratorConfig,
) -> Intent:
    """Apply the loop bound and the extreme-principle tie-break."""
    at_bound = state.loop_count >= config.max_loops

    if intent == Intent.TR_NEXT_CASE and at_bound:
        return Intent.TR_COMPLETE

    if intent == Intent.TR_COMPLETE and classification == PrincipleClassification.EXTREME:
        previous = state.current_principle
        tested = previous is not None and previous.classification == PrincipleClassification.EXTREME
        if not tested and not at_bound:
            return Intent.TR_NEXT_CASE

    return intent


def _principle_reasoning(
    state: DialogueState,
    decision: PrincipleReasoningDecision,
    student_message: str,
    topic_context: str,
    config: OrchestratorConfig,
) -> Transition:
    extracted = decision.extracted_data
    statement = (extracted.principle or "").strip() or student_message.strip()

    if decision.intent == Intent.TR_CLARIFY:
        return Transition(
            state=state.moved_to(DialogueStage.PRINCIPLE_REASONING, SubState.CLARIFY),
            follow_up=FollowUp(
                stage=DialogueStage.PRINCIPLE_REASONING,
                purpose=BuilderPurpose.CLARIFY,
                inputs=PrincipleClarifyInput(topic=state.topic, student_message=student_message),
            ),
            applied_intent=decision.intent,
        )

    if decision.intent == Intent.TR_SCAFFOLD:
        return Transition(
            state=state.moved_to(DialogueStage.PRINCIPLE_REASONING),
            follow_up=FollowUp(
                stage=DialogueStage.PRINCIPLE_REASONING,
                purpose=BuilderPurpose.REFINE,
                kind=BuilderKind.REFINEMENT,
                inputs=PrincipleRefinementInput(
                    topic=state.topic,
                    principle=statement,
                    tension=(extracted.tension or "").strip(),
                    student_message=student_message,
                ),
                capture=Capture.DRAFT_PRINCIPLE,
            ),
            applied_intent=decision.intent,
        )

    intent = _effective_principle_intent(state, decision.intent, extracted.classification, config)
    if intent != decision.intent:
        logger.info(
            "Principle intent %s handled as %s (loop %d/%d, classification=%s)",
            decision.intent.value, intent.value, state.loop_count, config.max_loops,
            extracted.classification.value,
        )

    with_principle = state.with_principle(statement, extracted.classification)

    if intent == Intent.TR_NEXT_CASE or with_principle.loop_count < config.min_loops_for_closure:
        new_state = with_principle.moved_to(DialogueStage.CASE_CHALLENGE, draft_principle=None)
        return Transition(
            state=new_state,
            follow_up=_challenge(new_state, topic_context, config, principle=statement),
            applied_intent=intent,
        )

    # TR_COMPLETE with enough loops behind it
    new_state = with_principle.moved_to(
        DialogueStage.CLOSURE, discussion_satisfied=True, draft_principle=None,
    )
    return Transition(
        state=new_state,
        follow_up=_summary(new_state),
        applied_intent=intent,
    )


def _closure(
    state: DialogueState,
    decision: ClosureDecision,
    student_message: str,
    topic_context: str,
    config: OrchestratorConfig,
) -> Transition:
    intent = decision.intent

    if intent == Intent.TR_CLARIFY:
        correction = (decision.extracted_data.correction or "").strip() or student_message.strip()
        return Transition(
            state=state.moved_to(DialogueStage.CLOSURE, SubState.CLARIFY),
            follow_up=FollowUp(
                stage=DialogueStage.CLOSURE,
                purpose=BuilderPurpose.REVISE,
                kind=BuilderKind.REFINEMENT,
                inputs=SummaryRevisionInput(
                    topic=state.topic,
                    draft_summary=state.draft_summary or "",
                    correction=correction,
                ),
                capture=Capture.DRAFT_SUMMARY,
            ),
            applied_intent=intent,
        )

    # TR_CONFIRM_END
    summary = state.draft_summary or ""
    return Transition(
        state=state.moved_to(DialogueStage.ENDED, summary=summary),
        follow_up=FollowUp(
            stage=DialogueStage.CLOSURE,
            purpose=BuilderPurpose.FAREWELL,
            inputs=FarewellInput(topic=state.topic, summary=summary),
        ),
        applied_intent=intent,
    )


_StageHandler = Callable[[DialogueState, Decision, str, str, OrchestratorConfig], Transition]

_HANDLERS: dict[DialogueStage, _StageHandler] = {
    DialogueStage.ASKING_STANCE: _asking_stance,
    DialogueStage.CASE_CHALLENGE: _case_challenge,
    DialogueStage.PRINCIPLE_REASONING: _principle_reasoning,
    DialogueStage.CLOSURE: _closure,
}


# ── Public API ───────────────────────────────────────────────────────────────

def validate_decision(stage: DialogueStage, decision: Decision) -> Intent:
    """Return the decision's intent if it is legal for *stage*.

    Raises:
        IllegalIntentError: Wrong decision type for the stage, or an intent
            outside the stage's vocabulary.
    """
    allowed = STAGE_INTENTS.get(stage)
    if allowed is None:
        raise IllegalIntentError(stage, decision.detected_intent, [])
    allowed_names = sorted(i.value for i in allowed)

    try:
        intent = Intent(decision.detected_intent)
    except ValueError:
        raise IllegalIntentError(stage, decision.detected_intent, allowed_names) from None

    if intent not in allowed or not isinstance(decision, STAGE_DECISIONS[stage]):
        raise IllegalIntentError(stage, decision.detected_intent, allowed_names)
    return intent


def apply_decision(
    state: DialogueState,
    decision: Decision,
    student_message: str,
    topic_context: str,
    config: OrchestratorConfig,
) -> Transition:
    """Compute the transition for *decision* in the current stage.

    *state* is expected to already contain the student's turn.
    """
    validate_decision(state.stage, decision)
    return _HANDLERS[state.stage](state, decision, student_message, topic_context, config)


def apply_capture(state: DialogueState, capture: Capture, response: StageResponse) -> DialogueState:
    """Store generated text on the field named by *capture*."""
    if capture == Capture.NONE:
        return state
    text = response.response_message or response.concise_question
    return state._replace(**{capture.value: text})
