"""socratic-dialogue — interactive terminal chat.

Wires the Gemini executor, the orchestrator, an in-memory store and the
conversation service together, then runs a single conversation in the
terminal.  Type ``exit`` or ``quit`` to stop.

    python -m socratic_dialogue.main "Is it ever right to break a promise?"
"""

from __future__ import annotations

import asyncio
import logging
import sys

from socratic_dialogue.config import settings
from socratic_dialogue.errors import TurnFailedError
from socratic_dialogue.executor.gemini import GeminiPromptExecutor
from socratic_dialogue.models.result import StageResult
from socratic_dialogue.orchestrator.orchestrator import SocraticOrchestrator
from socratic_dialogue.orchestrator.transitions import OrchestratorConfig
from socratic_dialogue.services.conversation_service import ConversationService
from socratic_dialogue.store.state_store import InMemoryDialogueStateStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "Is it acceptable to lie in order to protect someone's feelings?"
EXIT_WORDS = {"exit", "quit"}


def _print_report(result: StageResult) -> None:
    state = result.state
    stance = state.current_stance
    principle = state.current_principle
    print(f"\n--- stage: {state.stage.value}/{state.sub_state.value} | loop {state.loop_count}")
    if result.decision is not None:
        intent = result.decision.detected_intent
        if result.applied_intent is not None and result.applied_intent.value != intent:
            intent = f"{intent} -> {result.applied_intent.value}"
        print(f"--- intent: {intent}")
    if stance is not None:
        print(f"--- stance V{stance.version}: {stance.position}")
    if principle is not None:
        print(f"--- principle V{principle.version} ({principle.classification.value}): {principle.statement}")
    print(f"--- tokens: {result.usage.total_tokens}\n")


async def chat(topic: str) -> None:
    orchestrator = SocraticOrchestrator(
        GeminiPromptExecutor(),
        config=OrchestratorConfig.from_settings(settings),
    )
    service = ConversationService(InMemoryDialogueStateStore(), orchestrator)

    print(f"{settings.app_name}: {topic}")
    conversation_id, result = await service.start(topic)
    print(f"\nAI: {result.message}")
    _print_report(result)

    while not result.ended:
        message = (await asyncio.to_thread(input, "You: ")).strip()
        if not message:
            continue
        if message.lower() in EXIT_WORDS:
            break
        try:
            result = await service.send(conversation_id, message)
        except TurnFailedError as exc:
            logger.warning("Turn failed (retryable=%s): %s", exc.retryable, exc.cause)
            print("AI: Sorry, something went wrong. Please send that again.")
            continue
        print(f"\nAI: {result.message}")
        _print_report(result)

    summary = await service.summary(conversation_id)
    print(summary.model_dump_json(indent=2))


def main() -> None:
    topic = " ".join(sys.argv[1:]).strip() or DEFAULT_TOPIC
    try:
        asyncio.run(chat(topic))
    except (KeyboardInterrupt, EOFError):
        print()


if __name__ == "__main__":
    main()
