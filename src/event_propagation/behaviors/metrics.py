"""Prometheus-recording behaviors."""

from __future__ import annotations

import time
from typing import Any

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.enums import DispatchOutcome
from event_propagation.envelope import DomainEventWrapper, DomainEventWrapperCollection
from event_propagation.observability import metrics
from event_propagation.pipeline import PublishingDelegate, SubscriptionDelegate
from event_propagation.subscription.webhook_handler import current_dispatch_outcome


class MetricsPublishingBehavior:
    async def handle(
        self,
        domain_events: DomainEventWrapperCollection,
        next: PublishingDelegate,
        cancellation_token: CancellationToken,
    ) -> Any:
        try:
            result = await next(domain_events, cancellation_token)
        except Exception as exc:
            metrics.record_publish_failure(
                domain_events.domain_event_name, type(exc).__name__,
            )
            raise
        metrics.record_published(
            domain_events.domain_event_name,
            domain_events.domain_schema.value,
            len(domain_events),
        )
        return result


class MetricsSubscriptionBehavior:
    async def handle(
        self,
        domain_event: DomainEventWrapper,
        next: SubscriptionDelegate,
        cancellation_token: CancellationToken,
    ) -> Any:
        started = time.perf_counter()
        outcome = "handler_failed"
        try:
            result = await next(domain_event, cancellation_token)
            recorded = current_dispatch_outcome()
            if recorded is None and isinstance(result, DispatchOutcome):
                recorded = result
            outcome = (recorded or DispatchOutcome.DROPPED_BY_BEHAVIOR).value
            return result
        finally:
            metrics.record_handled(
                domain_event.domain_event_name,
                outcome,
                time.perf_counter() - started,
            )
