"""Stage 4 builders: summarise, revise on request, and close."""

from __future__ import annotations

from pydantic import BaseModel

from socratic_dialogue.builders.base import (
    BuilderPurpose,
    ClassificationBuilder,
    GenerationBuilder,
    RefinementBuilder,
)
from socratic_dialogue.builders.prompts import (
    CLASSIFIER_BASE,
    CLASSIFIER_OUTPUT_FORMAT,
    RESPONSE_GENERATOR_BASE,
    RESPONSE_OUTPUT_FORMAT,
    join_sections,
    section,
)
from socratic_dialogue.domain.decision import ClosureDecision
from socratic_dialogue.domain.enums import DialogueStage


# ── Inputs ───────────────────────────────────────────────────────────────────

class SummaryInput(BaseModel):
    topic: str
    stance_history: str
    final_stance: str
    final_reason: str = ""
    principle_history: str = ""
    final_principle: str = ""

    model_config = {"frozen": True}


class ClosureClassifierInput(BaseModel):
    topic: str
    draft_summary: str
    student_message: str

    model_config = {"frozen": True}


class SummaryRevisionInput(BaseModel):
    topic: str
    draft_summary: str
    correction: str

    model_config = {"frozen": True}


class FarewellInput(BaseModel):
    topic: str
    summary: str

    model_config = {"frozen": True}


# ── Builders ─────────────────────────────────────────────────────────────────

class SummaryBuilder(GenerationBuilder):
    stage = DialogueStage.CLOSURE
    purpose = BuilderPurpose.SUMMARY
    input_type = SummaryInput

    def render(self, inputs: SummaryInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [Closure_Summary]",
            section("Discussion topic", inputs.topic),
            section("Stance evolution", inputs.stance_history),
            section(
                "Final stance",
                f"{inputs.final_stance}\nReason: {inputs.final_reason or '(none given)'}",
            ),
            section("Principle evolution", inputs.principle_history),
            section("Final principle", inputs.final_principle),
            """Task:
Write the summary as the main message (a short paragraph, this rule does not
limit it to 1-3 sentences) covering:
- the initial stance,
- how the cases changed the student's thinking (if they did),
- the principle the student arrived at,
- the final conclusion.
Then ask whether the summary accurately reflects their thinking.""",
            RESPONSE_OUTPUT_FORMAT,
        )


class ClosureClassifierBuilder(ClassificationBuilder):
    stage = DialogueStage.CLOSURE
    input_type = ClosureClassifierInput
    decision_type = ClosureDecision

    def render(self, inputs: ClosureClassifierInput) -> str:
        return join_sections(
            CLASSIFIER_BASE,
            "Current stage: [Closure_Main]",
            "Goal: decide whether the student accepts the summary.",
            """Rules:
1. TR_CLARIFY: the student points out an error, wants wording changed, or wants
   something added ("mostly right, but..."). Put the requested change in
   extracted_data.correction.
2. TR_CONFIRM_END: the student clearly agrees the summary is accurate.""",
            section("Topic", inputs.topic),
            section("Summary presented", inputs.draft_summary),
            section("Student message", inputs.student_message),
            CLASSIFIER_OUTPUT_FORMAT,
        )


class SummaryRevisionBuilder(RefinementBuilder):
    stage = DialogueStage.CLOSURE
    purpose = BuilderPurpose.REVISE
    input_type = SummaryRevisionInput

    def render(self, inputs: SummaryRevisionInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [Closure_Revise]",
            section("Discussion topic", inputs.topic),
            section("Previous summary", inputs.draft_summary),
            section("Student's correction", inputs.correction),
            """Task:
Write the corrected summary as the main message: keep what was right, fix
what the student pointed out, use more precise wording for their view.
Then ask whether the corrected version is accurate.""",
            RESPONSE_OUTPUT_FORMAT,
        )


class FarewellBuilder(GenerationBuilder):
    stage = DialogueStage.CLOSURE
    purpose = BuilderPurpose.FAREWELL
    input_type = FarewellInput

    def render(self, inputs: FarewellInput) -> str:
        return join_sections(
            "You are a Socratic dialogue partner. The conversation is ending.",
            section("Discussion topic", inputs.topic),
            section("Confirmed summary", inputs.summary),
            """Task:
Write a warm, professional closing in 2-3 sentences: thank the student,
acknowledge their reasoning process, and optionally leave one thought for
future reflection. Do not ask a question.""",
        )
