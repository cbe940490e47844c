"""Wire encodings for the two Event Grid schemas.

*  EventGridEvent (custom topics): flat ``id``/``subject``/``eventType``/
   ``dataVersion``/``eventTime``/``data`` objects.
*  CloudEvents 1.0 (namespace topics): ``specversion``/``id``/``source``/
   ``type``/``time``/``data`` plus wrapper metadata as extension attributes.
"""

from __future__ import annotations

from typing import Any

from event_propagation.core.events import DOMAIN_EVENT_DEFAULT_VERSION
from event_propagation.core.ids import new_id, utc_now_iso
from event_propagation.envelope import DomainEventWrapper

CLOUD_EVENT_SPEC_VERSION = "1.0"
JSON_CONTENT_TYPE = "application/json"


def to_event_grid_event(wrapper: DomainEventWrapper) -> dict[str, Any]:
    return {
        "id": new_id(),
        "subject": wrapper.subject,
        "eventType": wrapper.domain_event_name,
        "dataVersion": DOMAIN_EVENT_DEFAULT_VERSION,
        "eventTime": utc_now_iso(),
        "data": wrapper.json_data(),
    }


def to_cloud_event(
    wrapper: DomainEventWrapper,
    source: str,
    topic_name: str = "",
) -> dict[str, Any]:
    """Encode *wrapper* as a CloudEvent.

    *topic_name* travels as the ``topic`` extension attribute so that
    subscribers can filter on the namespace topic, which ``source`` (the
    namespace endpoint) does not name.
    """
    event: dict[str, Any] = {
        "specversion": CLOUD_EVENT_SPEC_VERSION,
        "id": new_id(),
        "source": source,
        "type": wrapper.domain_event_name,
        "subject": wrapper.subject,
        "time": utc_now_iso(),
        "datacontenttype": JSON_CONTENT_TYPE,
        "data": wrapper.json_data(),
    }
    if topic_name:
        event["topic"] = topic_name
    for key, value in wrapper.metadata.items():
        # CloudEvents extension attribute names are lowercase.
        event.setdefault(key.lower(), value)
    return event
