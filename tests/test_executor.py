"""Tests for the Gemini prompt executor.

The chat model is mocked at the langchain ``ainvoke`` level, returning
SimpleNamespace responses shaped like AIMessage.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from socratic_dialogue.builders.base import Prompt
from socratic_dialogue.domain.decision import ClosureDecision
from socratic_dialogue.domain.dialogue import Turn
from socratic_dialogue.domain.enums import Role
from socratic_dialogue.errors import DecisionParseError, MalformedResponseError, ProviderError
from socratic_dialogue.executor.base import StructuredResult, TextResult
from socratic_dialogue.executor.gemini import (
    GeminiPromptExecutor,
    response_text,
    strip_code_fences,
    to_messages,
)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _response(content, usage: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(content=content, usage_metadata=usage)


class _StatusError(Exception):
    """Provider SDK error carrying an HTTP status code."""

    def __init__(self, code: int) -> None:
        super().__init__(f"HTTP {code}")
        self.code = code


def _mock_llm(*responses) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=list(responses))
    return llm


def _executor(llm: MagicMock, **kwargs) -> GeminiPromptExecutor:
    kwargs.setdefault("parse_retries", 1)
    kwargs.setdefault("timeout_seconds", 5.0)
    return GeminiPromptExecutor(lambda: llm, **kwargs)


def _text_prompt() -> Prompt:
    return Prompt(
        system_instruction="Be Socratic.",
        turns=(Turn(role=Role.MODEL, text="Hi?"), Turn(role=Role.USER, text="Hello")),
    )


def _closure_prompt() -> Prompt:
    return Prompt(
        system_instruction="Classify.",
        turns=(Turn(role=Role.USER, text="Looks right"),),
        schema=ClosureDecision,
    )


_VALID = json.dumps({"thought_process": "agrees", "detected_intent": "TR_CONFIRM_END"})


# ── Message assembly ─────────────────────────────────────────────────────────

class TestMessages:
    def test_roles_mapped(self) -> None:
        messages = to_messages(_text_prompt())
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], AIMessage)
        assert isinstance(messages[2], HumanMessage)
        assert messages[0].content == "Be Socratic."

    def test_schema_hint_for_structured(self) -> None:
        messages = to_messages(_closure_prompt())
        assert "TR_CONFIRM_END" in messages[0].content
        assert "JSON schema" in messages[0].content

    def test_strip_code_fences(self) -> None:
        assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_response_text_from_parts(self) -> None:
        response = _response([{"type": "text", "text": "Hello "}, "world"])
        assert response_text(response) == "Hello world"


# ── Execution ────────────────────────────────────────────────────────────────

class TestExecute:
    @pytest.mark.asyncio
    async def test_text_result(self) -> None:
        llm = _mock_llm(_response(
            "Message.\n\nQuestion?",
            {"input_tokens": 7, "output_tokens": 3, "total_tokens": 10},
        ))
        result = await _executor(llm).execute(_text_prompt())
        assert isinstance(result, TextResult)
        assert result.text == "Message.\n\nQuestion?"
        assert result.usage.total_tokens == 10

    @pytest.mark.asyncio
    async def test_structured_result(self) -> None:
        llm = _mock_llm(_response(f"```json\n{_VALID}\n```"))
        result = await _executor(llm).execute(_closure_prompt())
        assert isinstance(result, StructuredResult)
        assert isinstance(result.value, ClosureDecision)
        assert result.value.detected_intent == "TR_CONFIRM_END"

    @pytest.mark.asyncio
    async def test_parse_failure_retried_once(self) -> None:
        llm = _mock_llm(
            _response('{"detected_intent": "TR_SCAFFOLD"}', {"input_tokens": 5, "output_tokens": 1, "total_tokens": 6}),
            _response(_VALID, {"input_tokens": 5, "output_tokens": 1, "total_tokens": 6}),
        )
        result = await _executor(llm).execute(_closure_prompt())
        assert result.value.detected_intent == "TR_CONFIRM_END"
        assert llm.ainvoke.await_count == 2
        # Same prompt on retry
        assert llm.ainvoke.await_args_list[0].args == llm.ainvoke.await_args_list[1].args
        assert result.usage.total_tokens == 12

    @pytest.mark.asyncio
    async def test_parse_failure_surfaces_after_retry(self) -> None:
        llm = _mock_llm(_response("not json"), _response("still not json"))
        with pytest.raises(DecisionParseError) as info:
            await _executor(llm).execute(_closure_prompt())
        assert info.value.raw_text == "still not json"
        assert llm.ainvoke.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_text_is_malformed(self) -> None:
        llm = _mock_llm(_response(""), _response("   "))
        with pytest.raises(MalformedResponseError):
            await _executor(llm).execute(_text_prompt())
        assert llm.ainvoke.await_count == 2

    @pytest.mark.asyncio
    async def test_no_retry_when_disabled(self) -> None:
        llm = _mock_llm(_response("not json"))
        with pytest.raises(DecisionParseError):
            await _executor(llm, parse_retries=0).execute(_closure_prompt())
        assert llm.ainvoke.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        llm = _mock_llm(ConnectionError("reset"))
        with pytest.raises(ProviderError) as info:
            await _executor(llm).execute(_text_prompt())
        assert info.value.transient is True
        assert llm.ainvoke.await_count == 1

    @pytest.mark.asyncio
    async def test_other_error_is_permanent(self) -> None:
        llm = _mock_llm(PermissionError("API key rejected"))
        with pytest.raises(ProviderError) as info:
            await _executor(llm).execute(_text_prompt())
        assert info.value.transient is False

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        async def _slow(_messages):
            await asyncio.sleep(1)

        llm = MagicMock()
        llm.ainvoke = _slow
        with pytest.raises(ProviderError) as info:
            await _executor(llm, timeout_seconds=0.01).execute(_text_prompt())
        assert info.value.transient is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [429, 503])
    async def test_rate_limit_and_overload_are_transient(self, code: int) -> None:
        llm = _mock_llm(_StatusError(code))
        with pytest.raises(ProviderError) as info:
            await _executor(llm).execute(_text_prompt())
        assert info.value.transient is True
        assert llm.ainvoke.await_count == 1

    @pytest.mark.asyncio
    async def test_client_status_is_permanent(self) -> None:
        llm = _mock_llm(_StatusError(400))
        with pytest.raises(ProviderError) as info:
            await _executor(llm).execute(_text_prompt())
        assert info.value.transient is False

    @pytest.mark.asyncio
    async def test_google_api_core_quota_errors_are_transient(self) -> None:
        google_exceptions = pytest.importorskip("google.api_core.exceptions")
        for exc in (
            google_exceptions.ResourceExhausted("quota"),
            google_exceptions.ServiceUnavailable("overloaded"),
        ):
            with pytest.raises(ProviderError) as info:
                await _executor(_mock_llm(exc)).execute(_text_prompt())
            assert info.value.transient is True

    @pytest.mark.asyncio
    async def test_factory_failure_is_provider_error(self) -> None:
        def _no_key():
            raise RuntimeError("Gemini API key not found")

        executor = GeminiPromptExecutor(_no_key, parse_retries=0, timeout_seconds=5.0)
        with pytest.raises(ProviderError) as info:
            await executor.execute(_text_prompt())
        assert info.value.transient is False
        assert isinstance(info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        llm = _mock_llm(asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await _executor(llm).execute(_text_prompt())

    @pytest.mark.asyncio
    async def test_llm_handle_cached(self) -> None:
        factory = MagicMock(return_value=_mock_llm(_response("a?"), _response("b?")))
        executor = GeminiPromptExecutor(factory, parse_retries=0, timeout_seconds=5.0)
        await executor.execute(_text_prompt())
        await executor.execute(_text_prompt())
        assert factory.call_count == 1

    @pytest.mark.asyncio
    async def test_generate_rejects_structured_prompt(self) -> None:
        with pytest.raises(ValueError):
            await _executor(_mock_llm()).generate(_closure_prompt())

    @pytest.mark.asyncio
    async def test_classify_rejects_text_prompt(self) -> None:
        with pytest.raises(ValueError):
            await _executor(_mock_llm()).classify(_text_prompt())


class TestDefaultFactory:
    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from socratic_dialogue.executor.gemini import default_llm_factory

        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.delenv("SOCRATIC_GEMINI_API_KEY", raising=False)
        with pytest.raises(RuntimeError, match="API key"):
            default_llm_factory()
