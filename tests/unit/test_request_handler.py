"""Tests for EventGridRequestHandler: validation, topic filtering, dispatch."""

from __future__ import annotations

import pytest

from event_propagation.core.enums import DispatchOutcome, EventGridRequestType
from event_propagation.core.errors import MalformedEnvelopeError
from event_propagation.subscription import (
    DomainEventGridWebhookHandler,
    EventGridRequestHandler,
)
from event_propagation.subscription.request import (
    SUBSCRIPTION_VALIDATION_EVENT_TYPE,
    event_topic,
    event_topics,
)
from sample_domain.events import OrderPlaced, OrderShipped
from sample_domain.payloads import NAMESPACE_ENDPOINT, cloud_event, event_grid_event

ORDERS_TOPIC = (
    "/subscriptions/0000/resourceGroups/shop/providers/"
    "Microsoft.EventGrid/topics/Orders"
)
BILLING_TOPIC = (
    "/subscriptions/0000/resourceGroups/shop/providers/"
    "Microsoft.EventGrid/topics/billing"
)


def _validation_event(code: str | None = "512d38b6-c7b8-40c8-89fe-f46f9e9622b6") -> dict:
    return event_grid_event(
        SUBSCRIPTION_VALIDATION_EVENT_TYPE,
        {"validationCode": code} if code else {},
        topic=ORDERS_TOPIC,
    )


@pytest.fixture
def request_handler(registry) -> EventGridRequestHandler:
    return EventGridRequestHandler(DomainEventGridWebhookHandler(registry))


class TestSubscriptionValidation:
    async def test_returns_validation_response(self, request_handler, received):
        result = await request_handler.handle_request([_validation_event()])
        assert result.request_type == EventGridRequestType.SUBSCRIPTION
        assert result.response == {
            "validationResponse": "512d38b6-c7b8-40c8-89fe-f46f9e9622b6"
        }
        assert received == []

    async def test_missing_code_rejected(self, request_handler):
        with pytest.raises(MalformedEnvelopeError):
            await request_handler.handle_request([_validation_event(code=None)])


class TestNotifications:
    async def test_list_of_events_dispatched_in_order(self, request_handler, received):
        result = await request_handler.handle_request([
            event_grid_event("com.example.order-placed", {"id": 1}),
            event_grid_event("com.example.order-placed", {"id": 2}),
            event_grid_event("com.example.unknown", {}),
        ])
        assert result.request_type == EventGridRequestType.NOTIFICATION
        assert result.response is None
        assert result.outcomes == [
            DispatchOutcome.HANDLER_COMPLETED,
            DispatchOutcome.HANDLER_COMPLETED,
            DispatchOutcome.DROPPED_UNREGISTERED_TYPE,
        ]
        assert received == [OrderPlaced(id=1), OrderPlaced(id=2)]

    async def test_single_cloud_event_object(self, request_handler, received):
        result = await request_handler.handle_request(
            cloud_event("com.example.order-shipped", {"id": 5})
        )
        assert result.outcomes == [DispatchOutcome.HANDLER_COMPLETED]
        assert received == [OrderShipped(id=5)]

    async def test_body_must_be_events(self, request_handler):
        with pytest.raises(MalformedEnvelopeError):
            await request_handler.handle_request("hello")
        with pytest.raises(MalformedEnvelopeError):
            await request_handler.handle_request([1, 2])


class TestSubscribedTopics:
    async def test_filters_by_topic_name(self, registry, received):
        request_handler = EventGridRequestHandler(
            DomainEventGridWebhookHandler(registry), subscribed_topics=["orders"],
        )
        result = await request_handler.handle_request([
            event_grid_event("com.example.order-placed", {"id": 1}, topic=ORDERS_TOPIC),
            event_grid_event("com.example.order-placed", {"id": 2}, topic=BILLING_TOPIC),
            event_grid_event("com.example.order-placed", {"id": 3}),
        ])
        assert result.outcomes == [DispatchOutcome.HANDLER_COMPLETED]
        assert received == [OrderPlaced(id=1)]

    async def test_full_topic_id_accepted(self, registry):
        request_handler = EventGridRequestHandler(
            DomainEventGridWebhookHandler(registry), subscribed_topics=[ORDERS_TOPIC],
        )
        assert request_handler.is_subscribed({"eventType": "x", "topic": ORDERS_TOPIC.lower()})

    async def test_cloud_event_topic_extension(self, registry):
        request_handler = EventGridRequestHandler(
            DomainEventGridWebhookHandler(registry), subscribed_topics=["orders"],
        )
        assert request_handler.is_subscribed(
            cloud_event("com.example.order-shipped", {"id": 1}, topic="orders")
        )
        assert not request_handler.is_subscribed(
            cloud_event("com.example.order-shipped", {"id": 1}, topic="billing")
        )

    async def test_cloud_event_namespace_host(self, registry):
        request_handler = EventGridRequestHandler(
            DomainEventGridWebhookHandler(registry),
            subscribed_topics=["shop.westus2-1.eventgrid.azure.net"],
        )
        assert request_handler.is_subscribed(cloud_event("com.example.order-shipped", {"id": 1}))

    async def test_cloud_event_source(self, registry):
        request_handler = EventGridRequestHandler(
            DomainEventGridWebhookHandler(registry), subscribed_topics=["orders"],
        )
        event = cloud_event("com.example.order-shipped", {"id": 1})
        event["source"] = "/namespaces/shop/topics/orders"
        assert request_handler.is_subscribed(event)

    def test_no_filter_accepts_all(self, request_handler):
        assert request_handler.is_subscribed({"eventType": "x"})

    def test_event_topic(self):
        assert event_topic(event_grid_event("x", {}, topic=ORDERS_TOPIC)) == ORDERS_TOPIC
        assert event_topic(cloud_event("x", {})).startswith("https://")
        assert event_topic(event_grid_event("x", {})) is None
        assert event_topics(cloud_event("x", {}, topic="orders")) == ["orders", NAMESPACE_ENDPOINT]
