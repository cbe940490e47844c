"""Enumerations used across the event propagation package."""

from enum import Enum


class EventSchema(str, Enum):
    """Wire schema a domain event is published and received with."""

    EVENT_GRID_EVENT = "EventGridEvent"
    CLOUD_EVENT = "CloudEvent"


class TopicType(str, Enum):
    """Kind of Event Grid topic the publisher sends to."""

    CUSTOM = "custom"
    NAMESPACE = "namespace"


class EventGridRequestType(str, Enum):
    SUBSCRIPTION = "subscription"
    NOTIFICATION = "notification"


class DispatchOutcome(str, Enum):
    """Terminal state of one inbound event on the subscription side."""

    DROPPED_MALFORMED = "dropped_malformed"
    DROPPED_UNREGISTERED_TYPE = "dropped_unregistered_type"
    DROPPED_NO_HANDLER = "dropped_no_handler"
    DROPPED_BY_BEHAVIOR = "dropped_by_behavior"
    HANDLER_COMPLETED = "handler_completed"
