"""Stage 1 builders: establish the student's initial stance (V1)."""

from __future__ import annotations

from pydantic import BaseModel

from socratic_dialogue.builders.base import (
    BuilderPurpose,
    ClassificationBuilder,
    GenerationBuilder,
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
from socratic_dialogue.domain.decision import AskingStanceDecision
from socratic_dialogue.domain.enums import DialogueStage


# ── Inputs ───────────────────────────────────────────────────────────────────

class OpeningInput(BaseModel):
    topic: str
    topic_context: str = ""

    model_config = {"frozen": True}


class StanceClassifierInput(BaseModel):
    topic: str
    current_question: str
    student_message: str
    awaiting_clarification: bool = False

    model_config = {"frozen": True}


class StanceClarifyInput(BaseModel):
    topic: str
    student_message: str

    model_config = {"frozen": True}


# ── Builders ─────────────────────────────────────────────────────────────────

class OpeningBuilder(GenerationBuilder):
    """Opening message: introduce the topic and ask for an initial stance."""

    stage = DialogueStage.ASKING_STANCE
    purpose = BuilderPurpose.OPENING
    input_type = OpeningInput

    def render(self, inputs: OpeningInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [AskingStance_Opening]",
            section("Discussion topic", inputs.topic),
            section("Background", inputs.topic_context),
            """Task:
1. Briefly introduce the topic in a friendly, professional tone.
2. Invite the student to share their initial position and one reason for it.
3. Encourage an intuitive first answer; it can change later.""",
            RESPONSE_OUTPUT_FORMAT,
        )


class StanceClassifierBuilder(ClassificationBuilder):
    stage = DialogueStage.ASKING_STANCE
    input_type = StanceClassifierInput
    decision_type = AskingStanceDecision

    def render(self, inputs: StanceClassifierInput) -> str:
        return join_sections(
            CLASSIFIER_BASE,
            "Current stage: [AskingStance_Main]",
            "Goal: decide whether the student has stated a clear initial stance.",
            """Rules:
1. TR_CLARIFY: the answer is vague, fence-sitting ("both sides have a point"),
   off-topic, or gives a position without any reason.
2. TR_V1_ESTABLISHED: the student clearly takes a side AND gives at least one
   reason. Put the position in extracted_data.stance and the reason in
   extracted_data.reasoning.""",
            CLARIFY_FOLLOW_UP_NOTE if inputs.awaiting_clarification else "",
            section("Topic", inputs.topic),
            section("Question asked", inputs.current_question),
            section("Student message", inputs.student_message),
            CLASSIFIER_OUTPUT_FORMAT,
        )


class StanceClarifyBuilder(GenerationBuilder):
    """Re-ask for a stance after an ambiguous answer."""

    stage = DialogueStage.ASKING_STANCE
    purpose = BuilderPurpose.CLARIFY
    input_type = StanceClarifyInput

    def render(self, inputs: StanceClarifyInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [AskingStance_Clarify]",
            section("Discussion topic", inputs.topic),
            section("Student's unclear answer", inputs.student_message),
            """Task:
1. Acknowledge that the question is genuinely hard.
2. Ask the student to lean one way for now, even tentatively
   (e.g. "If you had to choose...", "Which side does your intuition favour?").
3. Ask for one reason supporting that choice.""",
            RESPONSE_OUTPUT_FORMAT,
        )
