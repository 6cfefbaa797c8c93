"""Tests for stage builders, the response convention and the registry."""

from __future__ import annotations

import pytest

from socratic_dialogue.builders.base import (
    START_PLACEHOLDER,
    BuilderKind,
    BuilderPurpose,
    StageBuilder,
    StageResponse,
    format_stage_response,
    split_stage_response,
)
from socratic_dialogue.builders.registry import (
    BuilderKindMismatchError,
    BuilderNotFoundError,
    BuilderRegistry,
    default_registry,
)
from socratic_dialogue.builders.stage1_asking_stance import (
    OpeningBuilder,
    OpeningInput,
    StanceClassifierBuilder,
    StanceClassifierInput,
)
from socratic_dialogue.builders.stage2_case_challenge import ChallengeBuilder, ChallengeInput
from socratic_dialogue.builders.stage3_principle_reasoning import (
    PrincipleClassifierBuilder,
    PrincipleClassifierInput,
    PrincipleRefinementBuilder,
    PrincipleRefinementInput,
)
from socratic_dialogue.builders.stage4_closure import SummaryRevisionBuilder, SummaryRevisionInput
from socratic_dialogue.domain.decision import AskingStanceDecision
from socratic_dialogue.domain.dialogue import Turn
from socratic_dialogue.domain.enums import DialogueStage, Role


# ── Response convention ──────────────────────────────────────────────────────

class TestStageResponse:
    def test_split_at_last_blank_line(self) -> None:
        r = split_stage_response("First part.\n\nSecond part.\n\nWhat do you think?")
        assert r.response_message == "First part.\n\nSecond part."
        assert r.concise_question == "What do you think?"

    def test_bare_question(self) -> None:
        r = split_stage_response("  Which side are you on?  ")
        assert r == StageResponse(response_message="", concise_question="Which side are you on?")

    def test_message_without_question(self) -> None:
        r = split_stage_response("Thank you for the discussion.")
        assert r.response_message == "Thank you for the discussion."
        assert r.concise_question == ""

    def test_paragraphs_without_closing_question_stay_whole(self) -> None:
        text = "You first argued lying is wrong.\n\nIn the end you concluded harm prevention is the key."
        r = split_stage_response(text)
        assert r.response_message == text
        assert r.concise_question == ""
        assert format_stage_response(r) == text

    def test_full_width_question_mark(self) -> None:
        r = split_stage_response("Summary.\n\n这样总结准确吗？")
        assert r.response_message == "Summary."
        assert r.concise_question == "这样总结准确吗？"

    def test_format_joins_with_one_blank_line(self) -> None:
        text = format_stage_response(StageResponse("Message.", "Question?"))
        assert text == "Message.\n\nQuestion?"

    def test_format_skips_empty_parts(self) -> None:
        assert format_stage_response(StageResponse("", "Question?")) == "Question?"


# ── Builders ─────────────────────────────────────────────────────────────────

class TestBuilders:
    def test_opening_appends_placeholder_turn(self) -> None:
        prompt = OpeningBuilder().build((), OpeningInput(topic="Honesty"))
        assert not prompt.structured
        assert prompt.turns == (Turn(role=Role.USER, text=START_PLACEHOLDER),)
        assert "Honesty" in prompt.system_instruction

    def test_user_turn_last_kept(self) -> None:
        turns = (Turn(role=Role.MODEL, text="Q?"), Turn(role=Role.USER, text="A"))
        prompt = StanceClassifierBuilder().build(
            turns,
            StanceClassifierInput(topic="t", current_question="Q?", student_message="A"),
        )
        assert prompt.turns == turns

    def test_classifier_carries_schema(self) -> None:
        builder = StanceClassifierBuilder()
        prompt = builder.build(
            (),
            StanceClassifierInput(topic="t", current_question="Q?", student_message="A"),
        )
        assert prompt.structured
        assert prompt.schema is AskingStanceDecision
        assert builder.kind == BuilderKind.CLASSIFICATION
        assert builder.purpose == BuilderPurpose.DECISION

    def test_clarify_note_only_when_awaiting(self) -> None:
        builder = StanceClassifierBuilder()
        plain = builder.render(StanceClassifierInput(topic="t", current_question="Q", student_message="A"))
        waiting = builder.render(StanceClassifierInput(
            topic="t", current_question="Q", student_message="A", awaiting_clarification=True,
        ))
        assert "asked the student to clarify" not in plain
        assert "asked the student to clarify" in waiting

    def test_wrong_input_type_rejected(self) -> None:
        with pytest.raises(TypeError, match="OpeningInput"):
            OpeningBuilder().build((), ChallengeInput(topic="t", current_stance="s"))

    def test_challenge_targets_principle(self) -> None:
        text = ChallengeBuilder().render(ChallengeInput(
            topic="t", current_stance="s", principle_under_test="Never lie",
        ))
        assert "Principle under test" in text
        assert "Never lie" in text

    def test_challenge_omits_empty_sections(self) -> None:
        text = ChallengeBuilder().render(ChallengeInput(topic="t", current_stance="s"))
        assert "Previous case" not in text
        assert "Background" not in text

    def test_refinement_builders(self) -> None:
        assert PrincipleRefinementBuilder.kind == BuilderKind.REFINEMENT
        assert SummaryRevisionBuilder.kind == BuilderKind.REFINEMENT
        text = SummaryRevisionBuilder().render(SummaryRevisionInput(
            topic="t", draft_summary="Old summary", correction="Mention the second case",
        ))
        assert "Old summary" in text and "Mention the second case" in text
        text = PrincipleRefinementBuilder().render(PrincipleRefinementInput(
            topic="t", principle="Never lie", student_message="hmm",
        ))
        assert "(not specified)" in text

    def test_principle_classifier_shows_revision_under_review(self) -> None:
        builder = PrincipleClassifierBuilder()
        plain = builder.render(PrincipleClassifierInput(topic="t", current_stance="s", student_message="yes"))
        reviewing = builder.render(PrincipleClassifierInput(
            topic="t", current_stance="s", student_message="yes",
            proposed_revision="Lying is wrong unless it prevents harm.",
        ))
        assert "Revised principle offered for confirmation" not in plain
        assert "Revised principle offered for confirmation" in reviewing
        assert "Lying is wrong unless it prevents harm." in reviewing

    def test_build_is_pure(self) -> None:
        inputs = OpeningInput(topic="Honesty", topic_context="Kant vs. consequentialism")
        assert OpeningBuilder().build((), inputs) == OpeningBuilder().build((), inputs)


# ── Registry ─────────────────────────────────────────────────────────────────

class TestRegistry:
    def test_default_registry_covers_all_stages(self) -> None:
        registry = default_registry()
        assert len(registry) == 15
        for stage in (
            DialogueStage.ASKING_STANCE,
            DialogueStage.CASE_CHALLENGE,
            DialogueStage.PRINCIPLE_REASONING,
            DialogueStage.CLOSURE,
        ):
            assert registry.classifier(stage).stage == stage

    def test_duplicate_registration_rejected(self) -> None:
        registry = BuilderRegistry()
        registry.register(OpeningBuilder())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(OpeningBuilder())

    def test_missing_builder(self) -> None:
        with pytest.raises(BuilderNotFoundError):
            BuilderRegistry().get(DialogueStage.CLOSURE, BuilderPurpose.SUMMARY)

    def test_classifier_must_produce_a_decision(self) -> None:
        class LooseClassifier(StageBuilder):
            kind = BuilderKind.CLASSIFICATION
            stage = DialogueStage.CLOSURE
            purpose = BuilderPurpose.DECISION
            input_type = OpeningInput

            def render(self, inputs) -> str:
                return "Classify."

        registry = BuilderRegistry()
        registry.register(LooseClassifier())
        with pytest.raises(TypeError, match="not a ClassificationBuilder"):
            registry.classifier(DialogueStage.CLOSURE)

    def test_kind_mismatch(self) -> None:
        registry = default_registry()
        with pytest.raises(BuilderKindMismatchError):
            registry.get(
                DialogueStage.PRINCIPLE_REASONING, BuilderPurpose.REFINE, BuilderKind.GENERATION,
            )
