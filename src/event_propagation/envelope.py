"""Domain event wrappers: one internal shape for two wire schemas.

Outbound, a typed ``DomainEvent`` is wrapped into a
``DomainEventWrapper`` (name, subject, schema, serialized bytes).
Inbound, an untyped EventGridEvent or CloudEvent JSON object is wrapped
the same way; decoding the bytes into a concrete type waits until the
type registry has identified the target class.

Batches of wrappers for one publish call live in a
``DomainEventWrapperCollection``; every wrapper in a batch shares one
event name and one schema.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from event_propagation.core.enums import EventSchema
from event_propagation.core.errors import InvalidBatchError, MalformedEnvelopeError
from event_propagation.core.events import (
    DomainEvent,
    E,
    deserialize_domain_event,
    get_domain_event_name,
    get_domain_event_schema,
    serialize_domain_event,
)

# CloudEvents context attributes; anything else on an inbound CloudEvent
# is an extension attribute and lands in ``metadata``.
_CLOUD_EVENT_ATTRIBUTES = frozenset({
    "specversion", "id", "source", "type", "subject", "time",
    "datacontenttype", "dataschema", "data", "data_base64",
    # Routing extension written by the publisher, not wrapper metadata.
    "topic",
})


def detect_schema(raw: Mapping[str, Any]) -> EventSchema:
    """Tell a CloudEvent from an EventGridEvent by its required fields."""
    if not isinstance(raw, Mapping):
        raise MalformedEnvelopeError(
            f"Expected a JSON object, got {type(raw).__name__}"
        )
    if "specversion" in raw:
        return EventSchema.CLOUD_EVENT
    if "eventType" in raw:
        return EventSchema.EVENT_GRID_EVENT
    raise MalformedEnvelopeError(
        "Payload is neither a CloudEvent nor an EventGridEvent"
    )


def _json_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        # Event Grid delivers string data verbatim; JSON-in-a-string is common.
        return value.encode("utf-8")
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


@dataclass
class DomainEventWrapper:
    """Normalized internal representation of one domain event."""

    domain_event_name: str
    schema: EventSchema
    data: bytes
    subject: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.domain_event_name:
            raise MalformedEnvelopeError("Domain event name is required")
        if not self.subject:
            self.subject = self.domain_event_name

    # -- Construction ------------------------------------------------------

    @classmethod
    def from_domain_event(
        cls,
        event: DomainEvent,
        subject: str | None = None,
    ) -> DomainEventWrapper:
        """Wrap a typed domain event for publishing."""
        event_type = type(event)
        return cls(
            domain_event_name=get_domain_event_name(event_type),
            schema=get_domain_event_schema(event_type),
            data=serialize_domain_event(event),
            subject=subject or "",
        )

    @classmethod
    def from_event_grid_event(cls, raw: Mapping[str, Any]) -> DomainEventWrapper:
        if not isinstance(raw, Mapping):
            raise MalformedEnvelopeError(
                f"Expected a JSON object, got {type(raw).__name__}"
            )
        name = raw.get("eventType")
        if not name or not isinstance(name, str):
            raise MalformedEnvelopeError("EventGridEvent is missing 'eventType'")
        return cls(
            domain_event_name=name,
            schema=EventSchema.EVENT_GRID_EVENT,
            data=_json_bytes(raw.get("data")),
            subject=str(raw.get("subject") or ""),
        )

    @classmethod
    def from_cloud_event(cls, raw: Mapping[str, Any]) -> DomainEventWrapper:
        if not isinstance(raw, Mapping):
            raise MalformedEnvelopeError(
                f"Expected a JSON object, got {type(raw).__name__}"
            )
        name = raw.get("type")
        if not name or not isinstance(name, str):
            raise MalformedEnvelopeError("CloudEvent is missing 'type'")

        if raw.get("data_base64") is not None:
            try:
                data = base64.b64decode(raw["data_base64"], validate=True)
            except (binascii.Error, TypeError) as exc:
                raise MalformedEnvelopeError(
                    "CloudEvent 'data_base64' is not valid base64"
                ) from exc
        else:
            data = _json_bytes(raw.get("data"))

        metadata = {
            key: str(value)
            for key, value in raw.items()
            if key not in _CLOUD_EVENT_ATTRIBUTES and value is not None
        }
        return cls(
            domain_event_name=name,
            schema=EventSchema.CLOUD_EVENT,
            data=data,
            subject=str(raw.get("subject") or ""),
            metadata=metadata,
        )

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        schema: EventSchema | None = None,
    ) -> DomainEventWrapper:
        """Wrap an inbound event, detecting its schema when not given."""
        match schema or detect_schema(raw):
            case EventSchema.EVENT_GRID_EVENT:
                return cls.from_event_grid_event(raw)
            case EventSchema.CLOUD_EVENT:
                return cls.from_cloud_event(raw)
        raise MalformedEnvelopeError(f"Unknown event schema {schema!r}")

    # -- Payload -----------------------------------------------------------

    def deserialize(self, event_type: type[E]) -> E:
        return deserialize_domain_event(event_type, self.data)

    def json_data(self) -> Any:
        """Payload decoded as JSON, for wire formats that embed it."""
        try:
            return json.loads(self.data)
        except ValueError as exc:
            raise MalformedEnvelopeError(
                f"Payload of {self.domain_event_name!r} is not valid JSON"
            ) from exc

    # -- Side channel ------------------------------------------------------

    def set_metadata(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def get_metadata(self, key: str) -> str | None:
        return self.metadata.get(key)


class DomainEventWrapperCollection(Sequence[DomainEventWrapper]):
    """Homogeneous batch of wrappers published in one transport call."""

    def __init__(
        self,
        wrappers: Iterable[DomainEventWrapper],
        domain_event_name: str,
        schema: EventSchema,
    ) -> None:
        self._wrappers = list(wrappers)
        self.domain_event_name = domain_event_name
        self.domain_schema = schema

        for wrapper in self._wrappers:
            if wrapper.domain_event_name != domain_event_name or wrapper.schema != schema:
                raise InvalidBatchError(
                    f"Batch for {domain_event_name!r} cannot contain "
                    f"{wrapper.domain_event_name!r} ({wrapper.schema.value})"
                )

    @classmethod
    def create(
        cls,
        domain_events: Iterable[DomainEvent],
        subject: str | None = None,
    ) -> DomainEventWrapperCollection:
        """Wrap *domain_events*; an empty input gives an empty batch."""
        events = list(domain_events)
        if not events:
            return cls([], "", EventSchema.EVENT_GRID_EVENT)

        event_type = type(events[0])
        for event in events[1:]:
            if type(event) is not event_type:
                raise InvalidBatchError(
                    f"All domain events in a batch must be of the same type: "
                    f"got {event_type.__qualname__} and {type(event).__qualname__}"
                )

        wrappers = [DomainEventWrapper.from_domain_event(e, subject) for e in events]
        return cls(
            wrappers,
            get_domain_event_name(event_type),
            get_domain_event_schema(event_type),
        )

    def __getitem__(self, index):  # type: ignore[override]
        return self._wrappers[index]

    def __len__(self) -> int:
        return len(self._wrappers)

    def __iter__(self) -> Iterator[DomainEventWrapper]:
        return iter(self._wrappers)

    def __repr__(self) -> str:
        return (
            f"DomainEventWrapperCollection({self.domain_event_name!r}, "
            f"schema={self.domain_schema.value}, count={len(self)})"
        )
