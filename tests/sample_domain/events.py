from __future__ import annotations

from event_propagation.core.enums import EventSchema
from event_propagation.core.events import DomainEvent, domain_event


@domain_event("com.example.order-placed")
class OrderPlaced(DomainEvent):
    id: int


@domain_event("com.example.order-shipped", schema=EventSchema.CLOUD_EVENT)
class OrderShipped(DomainEvent):
    id: int
    carrier: str = "ups"


# Known to subscribers, but nobody handles it.
@domain_event("com.example.invoice-issued")
class InvoiceIssued(DomainEvent):
    invoice_id: str
