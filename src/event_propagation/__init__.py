"""Domain event propagation over Azure Event Grid.

Publish typed domain events to a custom or namespace topic and dispatch
inbound webhook deliveries to in-process handlers, with cross-cutting
behaviors around both directions.
"""

from .core.cancellation import CancellationToken
from .core.enums import DispatchOutcome, EventSchema, TopicType
from .core.errors import EventPropagationError, PublishingFailedError
from .core.events import DomainEvent, domain_event
from .envelope import DomainEventWrapper, DomainEventWrapperCollection
from .publishing import EventPropagationClient
from .registry import DomainEventHandler, DomainEventTypeRegistry
from .subscription import DomainEventGridWebhookHandler, EventPropagationSubscriberBuilder

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "DispatchOutcome",
    "DomainEvent",
    "DomainEventGridWebhookHandler",
    "DomainEventHandler",
    "DomainEventTypeRegistry",
    "DomainEventWrapper",
    "DomainEventWrapperCollection",
    "EventPropagationClient",
    "EventPropagationError",
    "EventPropagationSubscriberBuilder",
    "EventSchema",
    "PublishingFailedError",
    "TopicType",
    "domain_event",
]
