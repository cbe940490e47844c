"""Webhook dispatcher: inbound event -> registered handler.

For each inbound event the dispatcher

1. wraps the raw JSON (EventGridEvent or CloudEvent) in a
   ``DomainEventWrapper``; malformed input is logged and dropped,
2. looks the event name up in the frozen type registry; unknown names
   are logged and dropped,
3. runs the subscription behavior pipeline, whose terminal step resolves
   the handler, decodes the payload into its registered class and awaits
   the handler.

The two "not found" cases log different messages and report different
``DispatchOutcome`` values but are otherwise treated the same: the event
is acknowledged and nothing else happens.  Handler errors propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from contextvars import ContextVar
from typing import Any

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.enums import DispatchOutcome
from event_propagation.core.errors import MalformedEnvelopeError
from event_propagation.envelope import DomainEventWrapper
from event_propagation.pipeline import (
    SubscriptionDomainEventBehavior,
    build_pipeline,
    check_unique_behaviors,
)
from event_propagation.registry import DomainEventTypeRegistry

logger = logging.getLogger(__name__)


class _DispatchRecord:
    """Outcome slot for one event; written by the terminal dispatch step."""

    __slots__ = ("outcome",)

    def __init__(self) -> None:
        self.outcome: DispatchOutcome | None = None


_dispatch_record: ContextVar[_DispatchRecord | None] = ContextVar(
    "dispatch_record", default=None,
)


def current_dispatch_outcome() -> DispatchOutcome | None:
    """Outcome of the event being dispatched, once the terminal step has run.

    ``None`` before the handler lookup or when a behavior short-circuited.
    Lets behaviors observe the outcome whether or not the behaviors inside
    them return ``next``'s result.
    """
    record = _dispatch_record.get()
    return record.outcome if record is not None else None


def _record(outcome: DispatchOutcome) -> DispatchOutcome:
    record = _dispatch_record.get()
    if record is not None:
        record.outcome = outcome
    return outcome


class DomainEventGridWebhookHandler:
    """Dispatches inbound domain events to their handlers.

    Parameters
    ----------
    registry:
        Type registry; frozen on construction if it is not already.
    behaviors:
        Subscription behaviors, outermost first.
    """

    def __init__(
        self,
        registry: DomainEventTypeRegistry,
        behaviors: Sequence[SubscriptionDomainEventBehavior] = (),
    ) -> None:
        check_unique_behaviors(behaviors)
        registry.freeze()
        self._registry = registry
        self._behaviors = tuple(behaviors)
        self._pipeline = build_pipeline(self._dispatch, self._behaviors)

    @property
    def registry(self) -> DomainEventTypeRegistry:
        return self._registry

    async def handle_event_grid_webhook_event(
        self,
        event: Mapping[str, Any] | DomainEventWrapper,
        cancellation_token: CancellationToken | None = None,
    ) -> DispatchOutcome:
        """Dispatch one inbound event and report what happened to it."""
        token = cancellation_token or CancellationToken.none()

        if isinstance(event, DomainEventWrapper):
            wrapper = event
        else:
            try:
                wrapper = DomainEventWrapper.from_raw(event)
            except MalformedEnvelopeError as exc:
                logger.warning("Dropping malformed domain event: %s", exc)
                return DispatchOutcome.DROPPED_MALFORMED

        if wrapper.domain_event_name not in self._registry:
            logger.warning(
                "Domain event type not registered: %s", wrapper.domain_event_name,
            )
            return DispatchOutcome.DROPPED_UNREGISTERED_TYPE

        token.raise_if_cancellation_requested()
        record = _DispatchRecord()
        reset = _dispatch_record.set(record)
        try:
            await self._pipeline(wrapper, token)
        finally:
            _dispatch_record.reset(reset)

        if record.outcome is not None:
            return record.outcome
        logger.debug(
            "Domain event %s stopped by a subscription behavior",
            wrapper.domain_event_name,
        )
        return DispatchOutcome.DROPPED_BY_BEHAVIOR

    async def _dispatch(
        self,
        wrapper: DomainEventWrapper,
        cancellation_token: CancellationToken,
    ) -> DispatchOutcome:
        name = wrapper.domain_event_name
        handler = self._registry.resolve_handler(name)
        if handler is None:
            logger.warning("No handler registered for domain event: %s", name)
            return _record(DispatchOutcome.DROPPED_NO_HANDLER)

        descriptor = self._registry.resolve(name)
        assert descriptor is not None
        domain_event = descriptor.deserialize(wrapper.data)

        cancellation_token.raise_if_cancellation_requested()
        await handler(domain_event, cancellation_token)
        logger.debug("Handled domain event %s", name)
        return _record(DispatchOutcome.HANDLER_COMPLETED)
