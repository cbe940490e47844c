"""Broker transports: the byte-moving edge of the publishing client.

``EventGridTransport`` is the seam.  ``HttpEventGridTransport`` talks to
the Event Grid data-plane REST API with httpx; ``InMemoryEventGridTransport``
records calls for local runs and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from event_propagation.core.cancellation import CancellationToken
from event_propagation.core.config import PublisherConfig

logger = logging.getLogger(__name__)

NAMESPACE_API_VERSION = "2023-11-01"
CLOUD_EVENTS_BATCH_CONTENT_TYPE = "application/cloudevents-batch+json; charset=utf-8"


@runtime_checkable
class EventGridTransport(Protocol):
    """Sends already-encoded batches to Event Grid."""

    async def send_event_grid_events(
        self,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        """Send EventGridEvent-schema events to the custom topic."""
        ...

    async def send_cloud_events(
        self,
        topic_name: str,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        """Send CloudEvents to *topic_name* on the namespace."""
        ...


class HttpEventGridTransport:
    """Event Grid REST transport.

    Parameters
    ----------
    topic_endpoint:
        Custom topic endpoint (``https://<topic>.<region>.eventgrid.azure.net/api/events``)
        or namespace endpoint (``https://<ns>.<region>.eventgrid.azure.net``).
    access_key:
        Topic or namespace access key.
    timeout:
        HTTP request timeout in seconds.
    client:
        Optional pre-built ``httpx.AsyncClient`` (shared pools, tests).
    """

    def __init__(
        self,
        topic_endpoint: str,
        access_key: str = "",
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = topic_endpoint.rstrip("/")
        self._access_key = access_key
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: PublisherConfig) -> HttpEventGridTransport:
        return cls(
            config.topic_endpoint,
            config.topic_access_key,
            timeout=config.timeout_seconds,
        )

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpEventGridTransport:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Sending -------------------------------------------------------------

    async def send_event_grid_events(
        self,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if self._access_key:
            headers["aeg-sas-key"] = self._access_key
        await self._post(self._endpoint, events, headers, cancellation_token)

    async def send_cloud_events(
        self,
        topic_name: str,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        url = f"{self._endpoint}/topics/{topic_name}:publish"
        headers = {"Content-Type": CLOUD_EVENTS_BATCH_CONTENT_TYPE}
        if self._access_key:
            headers["Authorization"] = f"SharedAccessKey {self._access_key}"
        await self._post(
            url, events, headers, cancellation_token,
            params={"api-version": NAMESPACE_API_VERSION},
        )

    async def _post(
        self,
        url: str,
        events: list[dict[str, Any]],
        headers: dict[str, str],
        cancellation_token: CancellationToken,
        params: dict[str, str] | None = None,
    ) -> None:
        await self.open()
        assert self._client is not None

        # Last point at which the batch can be abandoned as a whole.
        cancellation_token.raise_if_cancellation_requested()
        response = await self._client.post(url, json=events, headers=headers, params=params)
        response.raise_for_status()
        logger.debug(
            "Sent %d event(s) to %s status=%d", len(events), url, response.status_code,
        )


@dataclass
class SentBatch:
    """One recorded transport call."""

    events: list[dict[str, Any]]
    topic_name: str | None = None  # None for custom-topic sends

    @property
    def is_cloud_event_batch(self) -> bool:
        return self.topic_name is not None


@dataclass
class InMemoryEventGridTransport:
    """Transport that keeps every sent batch in memory."""

    sent: list[SentBatch] = field(default_factory=list)
    fail_with: Exception | None = None

    async def send_event_grid_events(
        self,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        cancellation_token.raise_if_cancellation_requested()
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentBatch(events=list(events)))

    async def send_cloud_events(
        self,
        topic_name: str,
        events: list[dict[str, Any]],
        cancellation_token: CancellationToken,
    ) -> None:
        cancellation_token.raise_if_cancellation_requested()
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentBatch(events=list(events), topic_name=topic_name))

    @property
    def call_count(self) -> int:
        return len(self.sent)

    def clear(self) -> None:
        self.sent.clear()
