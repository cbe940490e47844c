"""Startup wiring for the subscription side."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import ModuleType
from typing import Any

from event_propagation.core.config import Settings
from event_propagation.core.events import DomainEvent
from event_propagation.pipeline import SubscriptionDomainEventBehavior
from event_propagation.registry import (
    DomainEventHandler,
    DomainEventTypeRegistry,
    add_domain_event_handlers_from_module,
    add_domain_events_from_module,
)

from .request import EventGridRequestHandler
from .webhook_handler import DomainEventGridWebhookHandler

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[type[DomainEventHandler[Any]]], DomainEventHandler[Any]]


class EventPropagationSubscriberBuilder:
    """Collects event types, handlers and behaviors, then builds the dispatcher.

    Usage::

        handler = (
            EventPropagationSubscriberBuilder(settings)
            .add_domain_event_handlers_from_module("myservice.handlers")
            .add_behavior(TracingSubscriptionBehavior())
            .build_request_handler()
        )
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: DomainEventTypeRegistry | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._registry = registry or DomainEventTypeRegistry()
        self._behaviors: list[SubscriptionDomainEventBehavior] = []
        self._webhook_handler: DomainEventGridWebhookHandler | None = None

    @property
    def registry(self) -> DomainEventTypeRegistry:
        return self._registry

    def add_domain_event_handlers_from_module(
        self,
        module: ModuleType | str,
        factory: HandlerFactory | None = None,
    ) -> EventPropagationSubscriberBuilder:
        added = add_domain_event_handlers_from_module(self._registry, module, factory)
        logger.info("Registered %d domain event handler(s) from %s", len(added), module)
        return self

    def add_domain_events_from_module(
        self, module: ModuleType | str,
    ) -> EventPropagationSubscriberBuilder:
        add_domain_events_from_module(self._registry, module)
        return self

    def add_domain_event(
        self, event_type: type[DomainEvent],
    ) -> EventPropagationSubscriberBuilder:
        self._registry.register_domain_event(event_type)
        return self

    def add_handler(
        self,
        handler: DomainEventHandler[Any],
        event_type: type[DomainEvent] | None = None,
    ) -> EventPropagationSubscriberBuilder:
        self._registry.register_handler(handler, event_type)
        return self

    def add_behavior(
        self, behavior: SubscriptionDomainEventBehavior,
    ) -> EventPropagationSubscriberBuilder:
        self._behaviors.append(behavior)
        return self

    def build_webhook_handler(self) -> DomainEventGridWebhookHandler:
        """Freeze the registry and build the dispatcher (once)."""
        if self._webhook_handler is None:
            self._webhook_handler = DomainEventGridWebhookHandler(
                self._registry, self._behaviors,
            )
        return self._webhook_handler

    def build_request_handler(self) -> EventGridRequestHandler:
        return EventGridRequestHandler(
            self.build_webhook_handler(),
            self._settings.subscriber.subscribed_topics,
        )
