"""Shared test helpers: a scripted executor and state/decision factories."""

from __future__ import annotations

from typing import Any, Union

from socratic_dialogue.builders.base import Prompt
from socratic_dialogue.domain.decision import (
    AskingStanceDecision,
    CaseChallengeDecision,
    ClosureDecision,
    Decision,
    PrincipleReasoningDecision,
)
from socratic_dialogue.domain.dialogue import DialogueState, create_initial_state
from socratic_dialogue.domain.enums import DialogueStage, PrincipleClassification, Role, SubState
from socratic_dialogue.executor.base import (
    ExecutionResult,
    PromptExecutor,
    StructuredResult,
    TextResult,
)
from socratic_dialogue.models.usage import TokenUsage
from socratic_dialogue.orchestrator.transitions import OrchestratorConfig

TOPIC = "Is lying ever justified?"

Scripted = Union[str, Decision, BaseException]


class ScriptedExecutor(PromptExecutor):
    """Deterministic executor that replays a script of results.

    Strings become TextResults, Decisions become StructuredResults and
    exceptions are raised.  Every prompt received is recorded.
    """

    def __init__(self, *script: Scripted, usage: TokenUsage | None = None) -> None:
        self.script: list[Scripted] = list(script)
        self.prompts: list[Prompt] = []
        self.usage = usage or TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15)

    async def execute(self, prompt: Prompt) -> ExecutionResult:
        self.prompts.append(prompt)
        if not self.script:
            raise AssertionError(f"Unexpected executor call: {prompt.system_instruction[:80]!r}")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Decision):
            return StructuredResult(value=item, usage=self.usage)
        return TextResult(text=item, usage=self.usage)

    @property
    def calls(self) -> int:
        return len(self.prompts)


def config(max_loops: int = 3, min_loops: int = 1) -> OrchestratorConfig:
    return OrchestratorConfig(max_loops=max_loops, min_loops_for_closure=min_loops)


# ── Decisions ────────────────────────────────────────────────────────────────

def stance_decision(intent: str = "TR_V1_ESTABLISHED", stance: str | None = "P",
                    reasoning: str | None = "R") -> AskingStanceDecision:
    return AskingStanceDecision(
        detected_intent=intent,
        extracted_data={"stance": stance, "reasoning": reasoning},
    )


def case_decision(intent: str = "TR_CASE_COMPLETED", **extracted: Any) -> CaseChallengeDecision:
    return CaseChallengeDecision(detected_intent=intent, extracted_data=extracted)


def principle_decision(
    intent: str = "TR_COMPLETE",
    principle: str | None = "Lying is wrong unless it prevents serious harm.",
    classification: PrincipleClassification = PrincipleClassification.MODERATE,
    tension: str | None = None,
) -> PrincipleReasoningDecision:
    return PrincipleReasoningDecision(
        detected_intent=intent,
        extracted_data={
            "principle": principle,
            "classification": classification,
            "tension": tension,
        },
    )


def closure_decision(intent: str = "TR_CONFIRM_END", correction: str | None = None) -> ClosureDecision:
    return ClosureDecision(detected_intent=intent, extracted_data={"correction": correction})


# ── States ───────────────────────────────────────────────────────────────────

def asking_state(sub_state: SubState = SubState.MAIN) -> DialogueState:
    return (
        create_initial_state(TOPIC)
        .moved_to(DialogueStage.ASKING_STANCE, sub_state)
        .with_turn(Role.MODEL, "What is your position?\n\nDo you think lying is ever justified?")
    )


def challenge_state(loop_count: int = 0, **changes: Any) -> DialogueState:
    state = (
        asking_state()
        .with_stance("Lying is sometimes justified", "It can prevent harm")
        .moved_to(
            DialogueStage.CASE_CHALLENGE,
            loop_count=loop_count,
            current_case="A friend asks if their bad haircut looks good.",
        )
    )
    return state._replace(**changes) if changes else state


def principle_state(loop_count: int = 1, **changes: Any) -> DialogueState:
    state = challenge_state(loop_count=loop_count).moved_to(DialogueStage.PRINCIPLE_REASONING)
    return state._replace(**changes) if changes else state


def closure_state(draft: str = "You began by arguing that lying can be justified.") -> DialogueState:
    return (
        principle_state()
        .with_principle("Lying is wrong unless it prevents serious harm.", PrincipleClassification.MODERATE)
        .moved_to(DialogueStage.CLOSURE, discussion_satisfied=True, draft_summary=draft)
    )
