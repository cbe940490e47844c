"""Inbound side: webhook dispatcher, request handling and the FastAPI endpoint."""

from .builder import EventPropagationSubscriberBuilder
from .request import EventGridRequestHandler, EventGridRequestResult
from .webhook_handler import DomainEventGridWebhookHandler, current_dispatch_outcome

__all__ = [
    "DomainEventGridWebhookHandler",
    "EventGridRequestHandler",
    "EventGridRequestResult",
    "EventPropagationSubscriberBuilder",
    "current_dispatch_outcome",
]
