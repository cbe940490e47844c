"""Outbound side: publishing client, wire encoders and broker transports."""

from .client import EventPropagationClient
from .transport import (
    EventGridTransport,
    HttpEventGridTransport,
    InMemoryEventGridTransport,
    SentBatch,
)

__all__ = [
    "EventGridTransport",
    "EventPropagationClient",
    "HttpEventGridTransport",
    "InMemoryEventGridTransport",
    "SentBatch",
]
