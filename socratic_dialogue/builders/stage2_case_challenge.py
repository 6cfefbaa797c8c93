"""Stage 2 builders: pressure-test the stance with challenge cases."""

from __future__ import annotations

from typing import Optional

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
from socratic_dialogue.domain.decision import CaseChallengeDecision
from socratic_dialogue.domain.enums import DialogueStage


# ── Inputs ───────────────────────────────────────────────────────────────────

class ChallengeInput(BaseModel):
    topic: str
    topic_context: str = ""
    current_stance: str
    current_reason: str = ""
    loop_count: int = 0
    max_loops: int = 1
    previous_case: Optional[str] = None
    principle_under_test: Optional[str] = None

    model_config = {"frozen": True}


class CaseClassifierInput(BaseModel):
    topic: str
    current_stance: str
    current_reason: str = ""
    case_description: str = ""
    student_message: str
    loop_count: int = 0
    awaiting_clarification: bool = False

    model_config = {"frozen": True}


class CaseClarifyInput(BaseModel):
    topic: str
    case_description: str = ""
    student_message: str

    model_config = {"frozen": True}


class CaseScaffoldInput(BaseModel):
    topic: str
    original_stance: str
    original_reason: str = ""
    shifted_stance: Optional[str] = None
    student_message: str

    model_config = {"frozen": True}


# ── Builders ─────────────────────────────────────────────────────────────────

class ChallengeBuilder(GenerationBuilder):
    """Present a concrete case that probes the current stance.

    When *principle_under_test* is set the case targets that principle
    instead, which is how an extreme principle gets pressure-tested.
    """

    stage = DialogueStage.CASE_CHALLENGE
    purpose = BuilderPurpose.CHALLENGE
    input_type = ChallengeInput

    def render(self, inputs: ChallengeInput) -> str:
        if inputs.principle_under_test:
            task = """Task:
1. Briefly restate the principle the student proposed.
2. Present ONE concrete case in which following the principle strictly leads
   to a troubling outcome.
3. Ask whether the principle still holds in this case."""
        else:
            task = """Task:
1. Briefly acknowledge the student's stance.
2. Present ONE concrete, realistic case that challenges or probes it.
3. Ask one specific question about how the stance applies to the case.

Constraints:
- If the case contradicts the stance, ask: "Does your view still hold here?"
- If the case supports a different view, ask: "Would this make you reconsider?"
- Do not reuse the previous case."""

        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [CaseChallenge_Main]",
            section("Discussion topic", inputs.topic),
            section("Background", inputs.topic_context),
            section(
                "Student's current stance",
                f"{inputs.current_stance}\nReason: {inputs.current_reason or '(none given)'}",
            ),
            section("Principle under test", inputs.principle_under_test or ""),
            section("Previous case", inputs.previous_case or ""),
            f"Challenge round {inputs.loop_count + 1} of at most {inputs.max_loops}.",
            task,
            RESPONSE_OUTPUT_FORMAT,
        )


class CaseClassifierBuilder(ClassificationBuilder):
    stage = DialogueStage.CASE_CHALLENGE
    input_type = CaseClassifierInput
    decision_type = CaseChallengeDecision

    def render(self, inputs: CaseClassifierInput) -> str:
        return join_sections(
            CLASSIFIER_BASE,
            "Current stage: [CaseChallenge_Main]",
            "Goal: analyse how the student reacts to a counter-example (challenge case).",
            """Rules:
1. TR_CLARIFY: the answer is off-topic, evasive, too short, or logically unclear.
2. TR_SCAFFOLD: the answer contradicts the previous stance, shows hesitation
   ("maybe I was wrong"), or concedes the case, implying the stance needs updating.
3. TR_CASE_COMPLETED: the student defends the stance logically, or integrates
   the case into their view without contradiction.

extracted_data:
- stance / reasoning: the position and reason as they stand after this answer.
- stance_changed: true only if the position moved away from the previous stance.
- ready_for_principle: true if the student is already generalising and is ready
  to state the principle behind their view.""",
            CLARIFY_FOLLOW_UP_NOTE if inputs.awaiting_clarification else "",
            section("Topic", inputs.topic),
            section(
                "Previous stance",
                f"{inputs.current_stance}\nReason: {inputs.current_reason or '(none given)'}",
            ),
            section("Current case challenge", inputs.case_description),
            f"Completed challenge rounds so far: {inputs.loop_count}",
            section("Student message", inputs.student_message),
            CLASSIFIER_OUTPUT_FORMAT,
        )


class CaseClarifyBuilder(GenerationBuilder):
    """Re-ask within the same case after an unclear answer."""

    stage = DialogueStage.CASE_CHALLENGE
    purpose = BuilderPurpose.CLARIFY
    input_type = CaseClarifyInput

    def render(self, inputs: CaseClarifyInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [CaseChallenge_Clarify]",
            section("Discussion topic", inputs.topic),
            section("Current case", inputs.case_description),
            section("Student's unclear answer", inputs.student_message),
            """Task:
1. Restate the key point of the case in one sentence.
2. Ask a narrower question the student can answer directly.
Do not introduce a new case.""",
            RESPONSE_OUTPUT_FORMAT,
        )


class CaseScaffoldBuilder(GenerationBuilder):
    """Point out a shift or tension in the stance and invite an update."""

    stage = DialogueStage.CASE_CHALLENGE
    purpose = BuilderPurpose.SCAFFOLD
    input_type = CaseScaffoldInput

    def render(self, inputs: CaseScaffoldInput) -> str:
        return join_sections(
            RESPONSE_GENERATOR_BASE,
            "Current stage: [CaseChallenge_Scaffold]",
            section("Discussion topic", inputs.topic),
            section(
                "Original stance",
                f"{inputs.original_stance}\nReason: {inputs.original_reason or '(none given)'}",
            ),
            section("Apparent new stance", inputs.shifted_stance or ""),
            section("Student message", inputs.student_message),
            """Logical tension: the student's answer seems to pull away from the original stance.

Task:
1. Gently point out the tension or shift in their reasoning.
2. Ask whether they want to update or refine their original stance.""",
            RESPONSE_OUTPUT_FORMAT,
        )
