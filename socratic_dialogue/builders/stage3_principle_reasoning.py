"""Stage 3 builders: generalise the stance into a principle."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from socratic_dialogue.builders.base import (
    BuilderPurpose,
    ClassificationBuilder,
    GenerationBuilder,
    RefinementBuilder,
)
from socratic_dialogue.builders.prompts import (
    CLARIFY_FOLLOW_UP_NOTE,
    CLASSIFIER_BASE,
    CLASSIFIER_OUTPUT_FORMAT,
    RESPONSE_GENERATOR_BASE,
    RESPONSE_OUTPUT_FORMAT,
    join_sections,
    section,
)
from socratic_dialogue.domain.decision import PrincipleReasoningDecision
from socratic_dialogue.domain.enums import DialogueStage


# ── Inputs ───────────────────────────────────────────────────────────────────

class PrincipleQuestionInput(BaseModel):
    topic: str
    current_stance: str
    current_reason: str = ""
    stance_history: str = ""

    model_config = {"frozen": True}


class PrincipleClassifierInput(BaseModel):
    topic: str
    current_stance: str
    student_message: str
    previous_principle: Optional[str] = None
    proposed_revision: Optional[str] = None
    loop_count: int = 0
    min_loops_for_closure: int = 1
    awaiting_clarification: bool = False

    model_config = {"frozen": True}


class PrincipleClarifyInput(BaseModel):
    topic: str
    student_message: str

    model_config = {"frozen": True}


class PrincipleRefinementInput(BaseModel):
    topic: str
    principle: str
    tension: str = ""
    student_message: str

    model_config = {"frozen": True}


# ── Builders ─────────────────────────────────────────────────────────────────

class PrincipleQuestionBuilder(GenerationBuilder):
    stage = DialogueStage.PRINCIPLE_REASONING
    purpose = BuilderPurpose.PRINCIPLE
    input_type = PrincipleQuestionInput

    def render(self, inputs: PrincipleQuestionInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [PrincipleReasoning_Main]",
            section("Discussion topic", inputs.topic),
            section(
                "Student's current stance",
                f"{inputs.current_stance}\nReason: {inputs.current_reason or '(none given)'}",
            ),
            section("How the stance evolved", inputs.stance_history),
            """Task:
1. Acknowledge the stance the student reached through the cases.
2. Ask them to abstract it into a general principle or rule that would
   guide judgement in similar situations.

Example questions:
- "Based on your position, what general rule would you write?"
- "What principle supports this view across similar cases?\"""",
            RESPONSE_OUTPUT_FORMAT,
        )


class PrincipleClassifierBuilder(ClassificationBuilder):
    stage = DialogueStage.PRINCIPLE_REASONING
    input_type = PrincipleClassifierInput
    decision_type = PrincipleReasoningDecision

    def render(self, inputs: PrincipleClassifierInput) -> str:
        return join_sections(
            CLASSIFIER_BASE,
            "Current stage: [PrincipleReasoning_Main]",
            "Goal: analyse the principle the student articulated.",
            """Rules:
1. TR_CLARIFY: the principle is vague or too general to apply
   ("it depends on whether the result is good").
2. TR_SCAFFOLD: the principle is moderate but conflicts with the student's own
   moral intuitions or earlier answers; it needs adjusting, not a new case.
3. TR_NEXT_CASE: the principle is extreme (absolute, no exceptions, "any means
   are fine") and should be tested against a new case.
4. TR_COMPLETE: the principle is clear, consistent with the stance, and has
   been refined through discussion.

extracted_data:
- principle: the principle in one sentence, in the student's terms.  If the
  student accepts the revised principle offered to them, use that wording.
- classification: "moderate", "extreme" or "unclear".
- tension: for TR_SCAFFOLD, the conflict you detected.""",
            CLARIFY_FOLLOW_UP_NOTE if inputs.awaiting_clarification else "",
            section("Topic", inputs.topic),
            section("Student's stance", inputs.current_stance),
            section("Previously stated principle", inputs.previous_principle or ""),
            section("Revised principle offered for confirmation", inputs.proposed_revision or ""),
            f"Completed challenge rounds: {inputs.loop_count} "
            f"(at least {inputs.min_loops_for_closure} required before closure).",
            section("Student message", inputs.student_message),
            CLASSIFIER_OUTPUT_FORMAT,
        )


class PrincipleClarifyBuilder(GenerationBuilder):
    stage = DialogueStage.PRINCIPLE_REASONING
    purpose = BuilderPurpose.CLARIFY
    input_type = PrincipleClarifyInput

    def render(self, inputs: PrincipleClarifyInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [PrincipleReasoning_Clarify]",
            section("Discussion topic", inputs.topic),
            section("Student's principle (not precise enough)", inputs.student_message),
            """Task:
1. Point out what is ambiguous in the current wording.
2. Ask for a sharper definition, or an example of the principle applied.""",
            RESPONSE_OUTPUT_FORMAT,
        )


class PrincipleRefinementBuilder(RefinementBuilder):
    """Propose a revised principle that resolves a tension, then ask to confirm."""

    stage = DialogueStage.PRINCIPLE_REASONING
    purpose = BuilderPurpose.REFINE
    input_type = PrincipleRefinementInput

    def render(self, inputs: PrincipleRefinementInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [PrincipleReasoning_Scaffold]",
            section("Discussion topic", inputs.topic),
            section("Student's principle", inputs.principle),
            section("Detected tension", inputs.tension or "(not specified)"),
            section("Student message", inputs.student_message),
            """Task:
1. State the tension objectively, without criticising the student.
2. Offer a revised wording of the principle that adds the limiting condition
   the tension suggests.
3. Ask whether this revised principle captures what they mean.""",
            RESPONSE_OUTPUT_FORMAT,
        )
