"""Ready-made publishing and subscription behaviors."""

from event_propagation.behaviors.metrics import (
    MetricsPublishingBehavior,
    MetricsSubscriptionBehavior,
)
from event_propagation.behaviors.tracing import (
    TracingPublishingBehavior,
    TracingSubscriptionBehavior,
)

__all__ = [
    "MetricsPublishingBehavior",
    "MetricsSubscriptionBehavior",
    "TracingPublishingBehavior",
    "TracingSubscriptionBehavior",
]
