"""Tests for the in-memory DialogueState store."""

from __future__ import annotations

import gc

import pytest

from socratic_dialogue.domain.enums import DialogueStage
from socratic_dialogue.store.state_store import InMemoryDialogueStateStore
from tests.helpers import TOPIC, closure_state


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_unknown_id_returns_fresh_state(self) -> None:
        store = InMemoryDialogueStateStore()
        state = await store.load("missing", topic=TOPIC)
        assert state.stage == DialogueStage.AWAITING_START
        assert state.topic == TOPIC
        assert store.count == 0

    @pytest.mark.asyncio
    async def test_save_then_load(self) -> None:
        store = InMemoryDialogueStateStore()
        state = closure_state()
        await store.save("c1", state)
        loaded = await store.load("c1")
        assert loaded == state
        assert loaded is not state

    @pytest.mark.asyncio
    async def test_load_save_round_trip_is_byte_identical(self) -> None:
        store = InMemoryDialogueStateStore()
        await store.save("c1", closure_state())
        before = store.raw("c1")

        await store.save("c1", await store.load("c1"))

        assert store.raw("c1") == before

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = InMemoryDialogueStateStore()
        await store.save("c1", closure_state())
        assert await store.delete("c1") is True
        assert await store.delete("c1") is False
        assert store.conversation_ids == []

    def test_lock_per_conversation(self) -> None:
        store = InMemoryDialogueStateStore()
        a = store.lock("a")
        assert store.lock("a") is a
        assert store.lock("b") is not a

    def test_idle_locks_are_released(self) -> None:
        store = InMemoryDialogueStateStore()
        held = store.lock("kept")
        for i in range(1000):
            store.lock(f"c{i}")
        gc.collect()
        assert list(store._locks.keys()) == ["kept"]
        assert store.lock("kept") is held

    @pytest.mark.asyncio
    async def test_lock_survives_while_awaited(self) -> None:
        store = InMemoryDialogueStateStore()
        async with store.lock("c1"):
            gc.collect()
            assert store.lock("c1").locked()
        gc.collect()
        assert len(store._locks) == 0
