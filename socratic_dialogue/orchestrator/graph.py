"""Turn graph — the LangGraph topology for one orchestrator invocation.

Topology:

    START ─┬─ "classify" → classify → apply_transition → generate → record → END
           └─ "generate" ───────────────────────────────→ generate → record → END

The opening turn enters at ``generate`` with a preset follow-up; every
student turn enters at ``classify``.  ``classify`` and ``generate`` are the
only nodes that await the executor, and they run strictly in sequence.

Nodes never touch a store.  Exceptions raised by a node propagate out of
``ainvoke`` unchanged; the caller still holds the untouched input state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, TypedDict

from langgraph.graph import END, START, StateGraph

from socratic_dialogue.builders.base import format_stage_response, split_stage_response
from socratic_dialogue.builders.registry import BuilderRegistry
from socratic_dialogue.domain.decision import Decision
from socratic_dialogue.domain.dialogue import DialogueState
from socratic_dialogue.domain.enums import Intent, Role
from socratic_dialogue.executor.base import PromptExecutor
from socratic_dialogue.models.usage import TokenUsage
from socratic_dialogue.orchestrator.transitions import (
    FollowUp,
    OrchestratorConfig,
    apply_capture,
    apply_decision,
    classifier_inputs,
)

logger = logging.getLogger(__name__)


@dataclass
class TurnTrace:
    """Mutable side record of a turn, readable after a failed ``ainvoke``."""

    decision: Optional[Decision] = None


class TurnState(TypedDict, total=False):
    """LangGraph state for a single turn.

    Fields:
        dialogue: The DialogueState being advanced.  Starts as the input
                  state (plus the student's turn) and is replaced by nodes.
        student_message: Latest student text (absent on the opening turn).
        topic_context: Optional background material for generation prompts.
        follow_up: Generation step selected by the transition.
        decision: Classifier output for this turn.
        applied_intent: Intent the transition actually took, after bounds
                        and guards.  Absent on the opening turn.
        message: Student-facing reply.
        usage: Tokens consumed so far in this turn.
        trace: TurnTrace shared with the caller.
    """

    dialogue: DialogueState
    student_message: str
    topic_context: str
    follow_up: FollowUp
    decision: Decision
    applied_intent: Intent
    message: str
    usage: TokenUsage
    trace: TurnTrace


# ── Nodes ────────────────────────────────────────────────────────────────────

def route_entry(state: TurnState) -> str:
    return "generate" if state.get("follow_up") is not None else "classify"


def make_classify_node(
    executor: PromptExecutor,
    registry: BuilderRegistry,
    config: OrchestratorConfig,
):
    """Create the classify node with an injected executor."""

    async def classify(state: TurnState) -> dict:
        dialogue = state["dialogue"]
        builder = registry.classifier(dialogue.stage)
        inputs = classifier_inputs(dialogue, state["student_message"], config)
        prompt = builder.build(dialogue.conversation_history, inputs)

        result = await executor.classify(prompt)
        decision = result.value
        trace = state.get("trace")
        if trace is not None:
            trace.decision = decision

        logger.info(
            "Classified %s/%s → %s (confidence %.2f)",
            dialogue.stage.value, dialogue.sub_state.value,
            decision.detected_intent, decision.confidence_score,
        )
        logger.debug("Classifier thought process: %s", decision.thought_process)
        return {
            "decision": decision,
            "usage": state.get("usage", TokenUsage()) + result.usage,
        }

    return classify


def make_transition_node(config: OrchestratorConfig):
    def apply_transition(state: TurnState) -> dict:
        transition = apply_decision(
            state["dialogue"],
            state["decision"],
            state.get("student_message", ""),
            state.get("topic_context", ""),
            config,
        )
        return {
            "dialogue": transition.state,
            "follow_up": transition.follow_up,
            "applied_intent": transition.applied_intent,
        }

    return apply_transition


def make_generate_node(executor: PromptExecutor, registry: BuilderRegistry):
    """Create the generate node with an injected executor."""

    async def generate(state: TurnState) -> dict:
        dialogue = state["dialogue"]
        follow_up = state["follow_up"]
        builder = registry.get(follow_up.stage, follow_up.purpose, follow_up.kind)
        prompt = builder.build(dialogue.conversation_history, follow_up.inputs)

        result = await executor.generate(prompt)
        response = split_stage_response(result.text)
        logger.debug("Generated %r reply (%d chars)", builder, len(result.text))
        return {
            "dialogue": apply_capture(dialogue, follow_up.capture, response),
            "message": format_stage_response(response),
            "usage": state.get("usage", TokenUsage()) + result.usage,
        }

    return generate


def record(state: TurnState) -> dict:
    """Append the model's reply to the conversation history."""
    return {"dialogue": state["dialogue"].with_turn(Role.MODEL, state["message"])}


# ── Builder ──────────────────────────────────────────────────────────────────

def build_turn_graph(
    executor: PromptExecutor,
    registry: BuilderRegistry,
    config: OrchestratorConfig,
):
    """Construct and compile the turn graph.

    Returns:
        A compiled LangGraph application; invoke with ``ainvoke``.
    """
    graph = StateGraph(TurnState)

    # ── Register nodes ───────────────────────────────────────────────────
    graph.add_node("classify", make_classify_node(executor, registry, config))
    graph.add_node("apply_transition", make_transition_node(config))
    graph.add_node("generate", make_generate_node(executor, registry))
    graph.add_node("record", record)

    # ── Edges ────────────────────────────────────────────────────────────
    graph.add_conditional_edges(
        START,
        route_entry,
        {
            "classify": "classify",
            "generate": "generate",
        },
    )
    graph.add_edge("classify", "apply_transition")
    graph.add_edge("apply_transition", "generate")
    graph.add_edge("generate", "record")
    graph.add_edge("record", END)

    return graph.compile()
