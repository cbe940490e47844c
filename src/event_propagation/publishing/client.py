"""Publishing client.

Wraps outgoing domain events, runs them through the publishing behavior
pipeline and, at the end of it, picks the wire schema the destination
topic accepts:

================  ==========  =====================================
Event schema      Topic type  Result
================  ==========  =====================================
EventGridEvent    custom      EventGridEvent batch
EventGridEvent    namespace   ``UnsupportedOperationError``
CloudEvent        namespace   CloudEvent batch to the named topic
CloudEvent        custom      ``UnsupportedOperationError``
================  ==========  =====================================
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.config import PublisherConfig, Settings
from event_propagation.core.enums import EventSchema, TopicType
from event_propagation.core.errors import (
    EventPropagationError,
    PublishingFailedError,
    UnsupportedOperationError,
)
from event_propagation.core.events import DomainEvent
from event_propagation.envelope import DomainEventWrapperCollection
from event_propagation.pipeline import (
    PublishingDomainEventBehavior,
    build_pipeline,
    check_unique_behaviors,
)

from .transport import EventGridTransport, HttpEventGridTransport
from .wire import to_cloud_event, to_event_grid_event

logger = logging.getLogger(__name__)


class EventPropagationClient:
    """Publishes domain events to one Event Grid topic.

    Parameters
    ----------
    transport:
        Sends encoded batches to the broker.
    config:
        Destination topic settings.
    behaviors:
        Publishing behaviors, outermost first.

    Raises
    ------
    DuplicateRegistrationError
        If two behaviors of the same class are given.
    """

    def __init__(
        self,
        transport: EventGridTransport,
        config: PublisherConfig,
        behaviors: Sequence[PublishingDomainEventBehavior] = (),
    ) -> None:
        check_unique_behaviors(behaviors)
        self._transport = transport
        self._config = config
        self._behaviors = tuple(behaviors)
        self._pipeline = build_pipeline(self._send, self._behaviors)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: EventGridTransport | None = None,
        behaviors: Sequence[PublishingDomainEventBehavior] = (),
    ) -> EventPropagationClient:
        """Build a client for ``settings.publisher``.

        The HTTP transport is created from the same settings unless one
        is supplied.
        """
        config = settings.publisher
        config.validate_publisher()
        if transport is None:
            transport = HttpEventGridTransport.from_config(config)
        return cls(transport, config, behaviors)

    @property
    def config(self) -> PublisherConfig:
        return self._config

    @property
    def transport(self) -> EventGridTransport:
        return self._transport

    # -- Lifecycle -----------------------------------------------------------

    async def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> EventPropagationClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Publishing ----------------------------------------------------------

    async def publish_domain_event(
        self,
        domain_event: DomainEvent,
        subject: str | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        if domain_event is None:
            raise TypeError("domain_event must not be None")
        await self.publish_domain_events([domain_event], subject, cancellation_token)

    async def publish_domain_events(
        self,
        domain_events: Iterable[DomainEvent],
        subject: str | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> None:
        """Publish a batch of same-typed domain events in one broker call.

        An empty batch is a no-op.

        Raises
        ------
        TypeError
            If *domain_events* is ``None``.
        InvalidBatchError
            If the events are not all of one type.
        UnsupportedOperationError
            If the event schema does not fit the configured topic type.
        PublishingFailedError
            If the transport or a behavior fails; the original error is
            chained as ``__cause__``.
        """
        if domain_events is None:
            raise TypeError("domain_events must not be None")

        batch = DomainEventWrapperCollection.create(domain_events, subject)
        if not batch:
            logger.debug("No domain events to publish")
            return

        token = cancellation_token or CancellationToken.none()
        try:
            await self._pipeline(batch, token)
        except EventPropagationError:
            raise
        except Exception as exc:
            logger.error(
                "Failed to publish %d %s event(s) to %s: %s",
                len(batch), batch.domain_event_name, self._config.topic_endpoint, exc,
            )
            raise PublishingFailedError(
                batch.domain_event_name, self._config.topic_endpoint,
            ) from exc

    # -- Terminal step -------------------------------------------------------

    async def _send(
        self,
        domain_events: DomainEventWrapperCollection,
        cancellation_token: CancellationToken,
    ) -> Any:
        cancellation_token.raise_if_cancellation_requested()
        topic_type = self._config.topic_type

        match domain_events.domain_schema:
            case EventSchema.EVENT_GRID_EVENT:
                if topic_type != TopicType.CUSTOM:
                    raise UnsupportedOperationError(
                        f"Domain event {domain_events.domain_event_name!r} uses the "
                        f"EventGridEvent schema, which {topic_type.value} topics "
                        f"do not accept"
                    )
                await self._send_event_grid_events(domain_events, cancellation_token)
            case EventSchema.CLOUD_EVENT:
                if topic_type != TopicType.NAMESPACE:
                    raise UnsupportedOperationError(
                        f"Domain event {domain_events.domain_event_name!r} uses the "
                        f"CloudEvent schema, which {topic_type.value} topics "
                        f"do not accept"
                    )
                await self._send_cloud_events(domain_events, cancellation_token)
            case _:
                raise UnsupportedOperationError(
                    f"Unknown event schema {domain_events.domain_schema!r}"
                )

    async def _send_event_grid_events(
        self,
        domain_events: DomainEventWrapperCollection,
        cancellation_token: CancellationToken,
    ) -> None:
        events = [to_event_grid_event(wrapper) for wrapper in domain_events]
        await self._transport.send_event_grid_events(events, cancellation_token)
        logger.info(
            "Published %d %s event(s) to custom topic %s",
            len(events), domain_events.domain_event_name, self._config.topic_endpoint,
        )

    async def _send_cloud_events(
        self,
        domain_events: DomainEventWrapperCollection,
        cancellation_token: CancellationToken,
    ) -> None:
        source = self._config.topic_endpoint
        topic_name = self._config.topic_name
        events = [to_cloud_event(wrapper, source, topic_name) for wrapper in domain_events]
        await self._transport.send_cloud_events(
            topic_name, events, cancellation_token,
        )
        logger.info(
            "Published %d %s event(s) to namespace topic %s",
            len(events), domain_events.domain_event_name, self._config.topic_name,
        )
