"""Custom exception hierarchy for event propagation."""

from __future__ import annotations

import asyncio


class EventPropagationError(Exception):
    """Base exception for all event propagation errors."""


# --- Configuration ---
class ConfigError(EventPropagationError):
    """Invalid or missing configuration."""


# --- Envelope ---
class MalformedEnvelopeError(EventPropagationError):
    """Inbound data cannot be turned into a domain event wrapper."""


class SerializationError(EventPropagationError):
    """The codec failed to encode or decode a domain event."""


class DomainEventDefinitionError(EventPropagationError, TypeError):
    """A class used as a domain event is missing its ``@domain_event`` declaration."""


class InvalidBatchError(EventPropagationError, ValueError):
    """A batch mixes domain event types."""


# --- Registration ---
class DuplicateRegistrationError(EventPropagationError):
    """The same domain event name, handler or behavior was registered twice."""


class RegistryFrozenError(EventPropagationError):
    """Registration attempted after the registry was frozen."""


# --- Publishing ---
class UnsupportedOperationError(EventPropagationError):
    """Event schema and topic type cannot be combined."""


class PublishingFailedError(EventPropagationError):
    """Sending a batch of domain events to the topic failed."""

    def __init__(self, domain_event_name: str, topic_endpoint: str) -> None:
        self.domain_event_name = domain_event_name
        self.topic_endpoint = topic_endpoint
        super().__init__(
            f"An error occurred while publishing domain event "
            f"{domain_event_name!r} to topic {topic_endpoint!r}"
        )


# --- Cancellation ---
class OperationCancelledError(asyncio.CancelledError):
    """Raised when a ``CancellationToken`` has been tripped."""
