"""Domain event base class and the ``@domain_event`` declaration.

Every event that crosses a service boundary is a Pydantic model derived
from ``DomainEvent`` and carries a stable wire name plus the schema it is
published with::

    @domain_event("com.example.order-placed", schema=EventSchema.CLOUD_EVENT)
    class OrderPlaced(DomainEvent):
        order_id: int

The wire name, not the Python class name, is what subscribers resolve, so
classes can be renamed or moved without breaking other services.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from .enums import EventSchema
from .errors import DomainEventDefinitionError, SerializationError

# Data version written on EventGridEvent payloads.
DOMAIN_EVENT_DEFAULT_VERSION = "1.0"

_NAME_ATTR = "__domain_event_name__"
_SCHEMA_ATTR = "__domain_event_schema__"

E = TypeVar("E", bound="DomainEvent")


class DomainEvent(BaseModel):
    """Base for all propagated domain events."""

    model_config = ConfigDict(extra="ignore")


def domain_event(
    name: str,
    schema: EventSchema = EventSchema.EVENT_GRID_EVENT,
) -> Callable[[type[E]], type[E]]:
    """Declare the wire name and schema of a ``DomainEvent`` subclass."""
    if not name or not name.strip():
        raise DomainEventDefinitionError("Domain event name must not be empty")

    def decorator(cls: type[E]) -> type[E]:
        if not (isinstance(cls, type) and issubclass(cls, DomainEvent)):
            raise DomainEventDefinitionError(
                f"@domain_event can only decorate DomainEvent subclasses, got {cls!r}"
            )
        # Set on the class itself so subclasses must declare their own.
        setattr(cls, _NAME_ATTR, name)
        setattr(cls, _SCHEMA_ATTR, EventSchema(schema))
        return cls

    return decorator


def is_domain_event_type(obj: Any) -> bool:
    """True when *obj* is a ``DomainEvent`` subclass with its own declaration."""
    return (
        isinstance(obj, type)
        and issubclass(obj, DomainEvent)
        and _NAME_ATTR in vars(obj)
    )


def get_domain_event_name(event_type: type[DomainEvent]) -> str:
    if not is_domain_event_type(event_type):
        raise DomainEventDefinitionError(
            f"{getattr(event_type, '__qualname__', event_type)!r} is not declared "
            f"with @domain_event"
        )
    return vars(event_type)[_NAME_ATTR]


def get_domain_event_schema(event_type: type[DomainEvent]) -> EventSchema:
    if not is_domain_event_type(event_type):
        raise DomainEventDefinitionError(
            f"{getattr(event_type, '__qualname__', event_type)!r} is not declared "
            f"with @domain_event"
        )
    return vars(event_type)[_SCHEMA_ATTR]


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def serialize_domain_event(event: DomainEvent) -> bytes:
    """Encode *event* as UTF-8 JSON."""
    try:
        return event.model_dump_json().encode("utf-8")
    except (ValueError, TypeError) as exc:
        raise SerializationError(
            f"Could not serialize {type(event).__qualname__}: {exc}"
        ) from exc


def deserialize_domain_event(event_type: type[E], data: bytes) -> E:
    """Decode JSON *data* into an instance of *event_type*."""
    try:
        return event_type.model_validate_json(data)
    except ValidationError as exc:
        raise SerializationError(
            f"Could not deserialize data into {event_type.__qualname__}: "
            f"{exc.error_count()} validation error(s)"
        ) from exc
