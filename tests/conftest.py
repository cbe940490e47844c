"""Shared fixtures for the event-propagation test suite."""

from __future__ import annotations

import pytest

from event_propagation.core.config import PublisherConfig
from event_propagation.core.enums import TopicType
from event_propagation.observability.logger import set_trace_id
from event_propagation.publishing.transport import InMemoryEventGridTransport
from event_propagation.registry import (
    DomainEventTypeRegistry,
    add_domain_event_handlers_from_module,
    add_domain_events_from_module,
)
from sample_domain.handlers import RECEIVED
from sample_domain.payloads import CUSTOM_TOPIC_ENDPOINT, NAMESPACE_ENDPOINT


@pytest.fixture(autouse=True)
def _reset_state():
    RECEIVED.clear()
    set_trace_id("")
    yield
    RECEIVED.clear()


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------

@pytest.fixture
def custom_config() -> PublisherConfig:
    return PublisherConfig(
        topic_type=TopicType.CUSTOM,
        topic_endpoint=CUSTOM_TOPIC_ENDPOINT,
        topic_access_key="custom-key",
    )


@pytest.fixture
def namespace_config() -> PublisherConfig:
    return PublisherConfig(
        topic_type=TopicType.NAMESPACE,
        topic_endpoint=NAMESPACE_ENDPOINT,
        topic_name="orders",
        topic_access_key="namespace-key",
    )


@pytest.fixture
def transport() -> InMemoryEventGridTransport:
    return InMemoryEventGridTransport()


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

@pytest.fixture
def registry() -> DomainEventTypeRegistry:
    """Registry with the sample handlers plus the unhandled sample events."""
    reg = DomainEventTypeRegistry()
    add_domain_event_handlers_from_module(reg, "sample_domain")
    add_domain_events_from_module(reg, "sample_domain")
    return reg


@pytest.fixture
def received() -> list:
    return RECEIVED
