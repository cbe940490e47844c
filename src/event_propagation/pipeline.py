"""Behavior pipelines wrapping publish and dispatch.

A pipeline is a terminal step wrapped by zero or more behaviors.  It is
composed once, right to left, into nested closures::

    build_pipeline(send, [tracing, metrics])
    # == lambda p, t: tracing.handle(p, lambda p, t: metrics.handle(p, send, t), t)

so the first declared behavior is the outermost one: it runs first on the
way in and last on the way out.  Each behavior may

*  pass through (``return await next(payload, token)``),
*  mutate side channels such as ``wrapper.metadata``,
*  short-circuit by not calling ``next`` (the event stops there), or
*  raise to abort the whole pipeline.

Composed pipelines hold no per-call state, so one instance serves every
concurrent publish or dispatch.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.errors import DuplicateRegistrationError
from event_propagation.envelope import DomainEventWrapper, DomainEventWrapperCollection

P = TypeVar("P")
P_contra = TypeVar("P_contra", contravariant=True)

Continuation = Callable[[P, CancellationToken], Awaitable[Any]]

# Continuations for each direction.
PublishingDelegate = Callable[
    [DomainEventWrapperCollection, CancellationToken], Awaitable[Any]
]
SubscriptionDelegate = Callable[[DomainEventWrapper, CancellationToken], Awaitable[Any]]


@runtime_checkable
class Behavior(Protocol[P_contra]):
    async def handle(
        self,
        payload: P_contra,
        next: Callable[[Any, CancellationToken], Awaitable[Any]],
        cancellation_token: CancellationToken,
    ) -> Any: ...


@runtime_checkable
class PublishingDomainEventBehavior(Protocol):
    """Cross-cutting step around every publish of a batch."""

    async def handle(
        self,
        domain_events: DomainEventWrapperCollection,
        next: PublishingDelegate,
        cancellation_token: CancellationToken,
    ) -> Any: ...


@runtime_checkable
class SubscriptionDomainEventBehavior(Protocol):
    """Cross-cutting step around every inbound event dispatch.

    Return the result of ``next`` so the dispatcher can report the outcome.
    """

    async def handle(
        self,
        domain_event: DomainEventWrapper,
        next: SubscriptionDelegate,
        cancellation_token: CancellationToken,
    ) -> Any: ...


def _wrap(behavior: Behavior[P], inner: Continuation[P]) -> Continuation[P]:
    async def step(payload: P, cancellation_token: CancellationToken) -> Any:
        return await behavior.handle(payload, inner, cancellation_token)

    step.__qualname__ = f"{type(behavior).__qualname__}.handle"
    return step


def build_pipeline(
    terminal: Continuation[P],
    behaviors: Sequence[Behavior[P]] = (),
) -> Continuation[P]:
    """Compose *behaviors* around *terminal*; first behavior is outermost."""
    pipeline = terminal
    for behavior in reversed(behaviors):
        pipeline = _wrap(behavior, pipeline)
    return pipeline


def check_unique_behaviors(behaviors: Sequence[object]) -> None:
    """Reject two behaviors of the same class in one pipeline."""
    seen: set[type] = set()
    for behavior in behaviors:
        kind = type(behavior)
        if kind in seen:
            raise DuplicateRegistrationError(
                f"Behavior {kind.__qualname__} is registered more than once"
            )
        seen.add(kind)
