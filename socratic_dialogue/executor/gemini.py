"""Gemini-backed PromptExecutor via langchain-google-genai.

Prompts are sent as langchain messages: the builder's system instruction
first, then the conversation turns.  Structured prompts additionally get
the decision's JSON schema appended to the system instruction, and the
reply is validated with pydantic.

Retry policy:
    - Empty text or a schema/JSON failure is retried ``parse_retries``
      times with the identical prompt, then surfaced.
    - Provider failures are never retried here; they are mapped to
      ProviderError and left to the caller.  Timeouts, connection errors
      and 408/429/5xx statuses are marked transient.  Failing to build
      the model (e.g. a missing API key) is not.
    - asyncio.CancelledError is never caught.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Callable, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import ValidationError

from socratic_dialogue.builders.base import Prompt
from socratic_dialogue.config import settings
from socratic_dialogue.domain.decision import Decision
from socratic_dialogue.domain.enums import Role
from socratic_dialogue.errors import DecisionParseError, MalformedResponseError, ProviderError
from socratic_dialogue.executor.base import (
    ExecutionResult,
    PromptExecutor,
    StructuredResult,
    TextResult,
)
from socratic_dialogue.models.usage import TokenUsage

logger = logging.getLogger(__name__)

LLMFactory = Callable[[], Any]  # Returns a langchain BaseChatModel


def default_llm_factory():
    """Create a Gemini chat model from environment config."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("SOCRATIC_GEMINI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "Gemini API key not found. Set GOOGLE_API_KEY or SOCRATIC_GEMINI_API_KEY "
            "in your environment variables."
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=api_key,
        temperature=settings.gemini_temperature,
        max_output_tokens=settings.gemini_max_output_tokens,
    )


# Rate limits, overload and gateway failures; google.api_core exceptions and
# google-genai APIError both carry the HTTP status as ``code``.
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def is_transient_status(exc: BaseException) -> bool:
    """True when a provider exception reports a retryable HTTP status."""
    for attr in ("code", "status_code"):
        code = getattr(exc, attr, None)
        if isinstance(code, int) and code in TRANSIENT_STATUS_CODES:
            return True
    return False


# ── Message assembly ─────────────────────────────────────────────────────────

def _schema_hint(schema: type[Decision]) -> str:
    return (
        "Your reply MUST be a single JSON object matching this JSON schema. "
        "No markdown, no explanation.\n"
        + json.dumps(schema.model_json_schema(), indent=2)
    )


def to_messages(prompt: Prompt) -> list[BaseMessage]:
    """Convert a Prompt into langchain messages."""
    system = prompt.system_instruction
    if prompt.schema is not None:
        system = f"{system}\n\n{_schema_hint(prompt.schema)}"

    messages: list[BaseMessage] = [SystemMessage(content=system)]
    for turn in prompt.turns:
        if turn.role == Role.USER:
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))
    return messages


# ── Response parsing ─────────────────────────────────────────────────────────

def response_text(response: Any) -> str:
    """Extract the text of a chat model response.

    Gemini may return content as a list of parts; text parts are joined.
    """
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        content = "".join(parts)
    return str(content or "").strip()


def strip_code_fences(text: str) -> str:
    text = text.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()
    return text


def parse_decision(text: str, schema: type[Decision]) -> Decision:
    """Validate *text* against *schema*.

    Raises:
        DecisionParseError: If the text is not valid JSON for the schema.
    """
    cleaned = strip_code_fences(text)
    try:
        return schema.model_validate_json(cleaned)
    except ValidationError as exc:
        raise DecisionParseError(
            f"{schema.__name__} validation failed: {exc.error_count()} error(s)",
            raw_text=text,
        ) from exc


# ── Executor ─────────────────────────────────────────────────────────────────

class GeminiPromptExecutor(PromptExecutor):
    """Runs prompts on a langchain chat model (Gemini by default).

    The model handle is created lazily by *llm_factory* on first use and
    cached; that handle is the only state kept across calls.
    """

    def __init__(
        self,
        llm_factory: Optional[LLMFactory] = None,
        *,
        parse_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._llm_factory = llm_factory or default_llm_factory
        self._llm: Any = None
        self.parse_retries = (
            settings.decision_parse_retries if parse_retries is None else parse_retries
        )
        self.timeout_seconds = (
            settings.llm_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = self._llm_factory()
        return self._llm

    async def execute(self, prompt: Prompt) -> ExecutionResult:
        messages = to_messages(prompt)
        usage = TokenUsage()
        attempts = self.parse_retries + 1

        for attempt in range(1, attempts + 1):
            response = await self._invoke(messages)
            usage = usage + TokenUsage.from_metadata(getattr(response, "usage_metadata", None))
            text = response_text(response)
            logger.debug("LLM response length: %d chars (attempt %d)", len(text), attempt)

            try:
                if not text:
                    raise MalformedResponseError("Provider returned an empty response")
                if prompt.schema is None:
                    return TextResult(text=text, usage=usage)
                return StructuredResult(value=parse_decision(text, prompt.schema), usage=usage)
            except MalformedResponseError as exc:
                if attempt >= attempts:
                    logger.error("Unusable LLM response after %d attempt(s): %s", attempt, exc)
                    raise
                logger.warning(
                    "Unusable LLM response (attempt %d/%d): %s; retrying",
                    attempt, attempts, exc,
                )

        raise AssertionError("unreachable")

    async def _invoke(self, messages: list[BaseMessage]) -> Any:
        """Call the provider once, mapping failures to ProviderError."""
        try:
            llm = self.llm
            return await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, TimeoutError, ConnectionError) as exc:
            logger.warning("LLM call failed transiently: %s", exc)
            raise ProviderError(f"Provider call failed: {exc!r}", transient=True) from exc
        except Exception as exc:
            if is_transient_status(exc):
                logger.warning("LLM call failed transiently: %s", exc)
                raise ProviderError(f"Provider call failed: {exc!r}", transient=True) from exc
            logger.error("LLM call failed: %s", exc)
            raise ProviderError(f"Provider call failed: {exc!r}", transient=False) from exc
