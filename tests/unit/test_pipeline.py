"""Tests for behavior pipeline composition."""

from __future__ import annotations

import asyncio

import pytest

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.errors import DuplicateRegistrationError
from event_propagation.pipeline import (
    PublishingDomainEventBehavior,
    SubscriptionDomainEventBehavior,
    build_pipeline,
    check_unique_behaviors,
)


class Recording:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log

    async def handle(self, payload, next, cancellation_token):
        self.log.append(f"{self.name}:before")
        result = await next(payload, cancellation_token)
        self.log.append(f"{self.name}:after")
        return result


class ShortCircuit:
    async def handle(self, payload, next, cancellation_token):
        return None


class Exploding:
    async def handle(self, payload, next, cancellation_token):
        raise RuntimeError("behavior failed")


class Rewriting:
    async def handle(self, payload, next, cancellation_token):
        return await next(payload + 1, cancellation_token)


def _terminal(log: list[str]):
    async def terminal(payload, cancellation_token):
        log.append(f"terminal:{payload}")
        return "done"

    return terminal


class TestBuildPipeline:
    async def test_no_behaviors_calls_terminal(self):
        log: list[str] = []
        pipeline = build_pipeline(_terminal(log))
        assert await pipeline(1, CancellationToken.none()) == "done"
        assert log == ["terminal:1"]

    async def test_first_behavior_is_outermost(self):
        log: list[str] = []
        pipeline = build_pipeline(
            _terminal(log), [Recording("a", log), Recording("b", log)],
        )
        assert await pipeline(1, CancellationToken.none()) == "done"
        assert log == ["a:before", "b:before", "terminal:1", "b:after", "a:after"]

    async def test_short_circuit_skips_terminal(self):
        log: list[str] = []
        pipeline = build_pipeline(
            _terminal(log), [Recording("a", log), ShortCircuit(), Recording("c", log)],
        )
        assert await pipeline(1, CancellationToken.none()) is None
        assert log == ["a:before", "a:after"]

    async def test_exception_aborts_pipeline(self):
        log: list[str] = []
        pipeline = build_pipeline(_terminal(log), [Recording("a", log), Exploding()])
        with pytest.raises(RuntimeError, match="behavior failed"):
            await pipeline(1, CancellationToken.none())
        assert log == ["a:before"]

    async def test_behavior_can_replace_payload(self):
        log: list[str] = []
        pipeline = build_pipeline(_terminal(log), [Rewriting()])
        await pipeline(1, CancellationToken.none())
        assert log == ["terminal:2"]

    async def test_pipeline_is_reentrant(self):
        log: list[str] = []
        pipeline = build_pipeline(_terminal(log), [Recording("a", log)])
        results = await asyncio.gather(
            *(pipeline(i, CancellationToken.none()) for i in range(5))
        )
        assert results == ["done"] * 5
        assert sorted(e for e in log if e.startswith("terminal")) == [
            f"terminal:{i}" for i in range(5)
        ]

    async def test_token_is_passed_through(self):
        seen: list[CancellationToken] = []

        async def terminal(payload, cancellation_token):
            seen.append(cancellation_token)

        token = CancellationToken()
        await build_pipeline(terminal, [Recording("a", [])])(1, token)
        assert seen == [token]


class TestBehaviorProtocols:
    def test_behaviors_satisfy_protocols(self):
        assert isinstance(Recording("a", []), PublishingDomainEventBehavior)
        assert isinstance(Recording("a", []), SubscriptionDomainEventBehavior)
        assert not isinstance(object(), SubscriptionDomainEventBehavior)


class TestCheckUniqueBehaviors:
    def test_distinct_classes_pass(self):
        check_unique_behaviors([Recording("a", []), ShortCircuit()])

    def test_same_class_twice_rejected(self):
        with pytest.raises(DuplicateRegistrationError, match="Recording"):
            check_unique_behaviors([Recording("a", []), Recording("b", [])])
