"""Trace-context behaviors.

This is the extension point for distributed tracing.  The publishing
side writes the current trace id into each event as a W3C
``traceparent`` value; it travels as a CloudEvents extension attribute.
The subscription side restores it (or starts a new trace) and binds the
event name into structlog's context for the duration of the handler.
"""

from __future__ import annotations

import logging
import re
import secrets
import uuid
from typing import Any

import structlog

from event_propagation.core.cancellation import CancellationToken
from event_propagation.envelope import DomainEventWrapper, DomainEventWrapperCollection
from event_propagation.observability.logger import (
    current_trace_id,
    get_trace_id,
    new_trace_id,
    set_trace_id,
)
from event_propagation.pipeline import PublishingDelegate, SubscriptionDelegate

logger = logging.getLogger(__name__)

TRACEPARENT_KEY = "traceparent"

_TRACEPARENT_RE = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-[0-9a-f]{2}$")


def format_traceparent(trace_id: str) -> str:
    """Build a ``traceparent`` value for *trace_id* with a fresh span id."""
    trace_hex = uuid.UUID(trace_id).hex if "-" in trace_id else trace_id
    return f"00-{trace_hex}-{secrets.token_hex(8)}-01"


def parse_traceparent(value: str | None) -> str | None:
    """Return the trace id carried by *value*, or ``None`` if malformed."""
    if not value:
        return None
    match = _TRACEPARENT_RE.match(value.strip().lower())
    if match is None:
        return None
    return str(uuid.UUID(match.group(1)))


class TracingPublishingBehavior:
    """Stamp every outgoing event with the current trace context."""

    async def handle(
        self,
        domain_events: DomainEventWrapperCollection,
        next: PublishingDelegate,
        cancellation_token: CancellationToken,
    ) -> Any:
        trace_id = get_trace_id()
        for wrapper in domain_events:
            if wrapper.get_metadata(TRACEPARENT_KEY) is None:
                wrapper.set_metadata(TRACEPARENT_KEY, format_traceparent(trace_id))

        logger.debug(
            "Publishing %d %s event(s) trace_id=%s",
            len(domain_events), domain_events.domain_event_name, trace_id,
        )
        return await next(domain_events, cancellation_token)


class TracingSubscriptionBehavior:
    """Continue the publisher's trace while the handler runs."""

    async def handle(
        self,
        domain_event: DomainEventWrapper,
        next: SubscriptionDelegate,
        cancellation_token: CancellationToken,
    ) -> Any:
        previous = current_trace_id()
        trace_id = parse_traceparent(domain_event.get_metadata(TRACEPARENT_KEY))
        if trace_id:
            set_trace_id(trace_id)
        else:
            trace_id = new_trace_id()

        try:
            with structlog.contextvars.bound_contextvars(
                domain_event_name=domain_event.domain_event_name,
                trace_id=trace_id,
            ):
                return await next(domain_event, cancellation_token)
        finally:
            set_trace_id(previous)
