from __future__ import annotations

import asyncio

import pytest

from omnichat.core.cancellation import CancellationToken
from omnichat.core.errors import ValidationError
from omnichat.core.generation import GenerationRegistry


class TestCancellationToken:
    def test_cancel_runs_callbacks_once(self):
        token = CancellationToken()
        calls = []
        token.on_cancel(lambda: calls.append("a"))

        assert token.cancel("stop")
        assert not token.cancel("again")
        assert calls == ["a"]
        assert token.cancel_reason == "stop"

    def test_late_callback_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []
        token.on_cancel(lambda: calls.append("late"))
        assert calls == ["late"]

    def test_removed_callback_does_not_run(self):
        token = CancellationToken()
        calls = []

        def callback():
            calls.append("x")

        token.on_cancel(callback)
        token.remove_callback(callback)
        token.cancel()
        assert calls == []

    def test_failing_callback_does_not_block_others(self):
        token = CancellationToken()
        calls = []

        def broken():
            raise RuntimeError("nope")

        token.on_cancel(broken)
        token.on_cancel(lambda: calls.append("ok"))
        token.cancel()
        assert calls == ["ok"]

    async def test_wait(self):
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)


class TestGenerationRegistry:
    def test_find_filters_by_owner_chat_and_request(self):
        registry = GenerationRegistry()
        a = registry.start("u1", "c1", request_id="a")
        registry.start("u1", "c2", request_id="b")
        registry.start("u2", "c1", request_id="c")

        assert registry.find("u1", "c1") == [a]
        assert registry.find("u1", "c1", request_id="b") == []
        assert len(registry) == 3

    def test_finish_is_idempotent(self):
        registry = GenerationRegistry()
        generation = registry.start("u1", "c1")
        assert generation.request_id
        registry.finish(generation)
        registry.finish(generation)
        assert len(registry) == 0

    def test_same_request_id_is_scoped_per_user_and_chat(self):
        registry = GenerationRegistry()
        alice = registry.start("alice", "chat-a", request_id="r1")
        bob = registry.start("bob", "chat-b", request_id="r1")

        registry.finish(alice)

        assert registry.find("bob", "chat-b") == [bob]
        assert registry.find("alice", "chat-a") == []

    def test_duplicate_active_request_is_rejected(self):
        registry = GenerationRegistry()
        first = registry.start("u1", "c1", request_id="r1")

        with pytest.raises(ValidationError, match="already in progress"):
            registry.start("u1", "c1", request_id="r1")

        assert registry.find("u1", "c1") == [first]

    def test_finish_leaves_a_newer_registration_alone(self):
        registry = GenerationRegistry()
        first = registry.start("u1", "c1", request_id="r1")
        registry.finish(first)
        second = registry.start("u1", "c1", request_id="r1")

        registry.finish(first)

        assert registry.find("u1", "c1") == [second]
