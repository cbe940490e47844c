"""Test the FastAPI webhook endpoint."""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request
from starlette.testclient import TestClient

from event_propagation.core.events import DomainEvent, domain_event
from event_propagation.registry import DomainEventHandler, DomainEventTypeRegistry
from event_propagation.subscription import (
    DomainEventGridWebhookHandler,
    EventGridRequestHandler,
)
from event_propagation.subscription.api import (
    DOMAIN_EVENTS_ROUTE,
    add_event_propagation_endpoint,
    create_webhook_app,
)
from event_propagation.subscription.request import SUBSCRIPTION_VALIDATION_EVENT_TYPE
from sample_domain.events import OrderPlaced
from sample_domain.payloads import event_grid_event


@domain_event("com.example.stock-depleted")
class StockDepleted(DomainEvent):
    sku: str


class BrokenHandler(DomainEventHandler[StockDepleted]):
    async def handle_domain_event(self, domain_event, cancellation_token):
        raise RuntimeError("warehouse offline")


def _make_client(registry, **kwargs) -> TestClient:
    request_handler = EventGridRequestHandler(DomainEventGridWebhookHandler(registry))
    return TestClient(create_webhook_app(request_handler), **kwargs)


class TestWebhookPost:
    def test_route(self):
        assert DOMAIN_EVENTS_ROUTE == "/eventgrid/domainevents"

    def test_subscription_validation(self, registry):
        client = _make_client(registry)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json=[
            event_grid_event(SUBSCRIPTION_VALIDATION_EVENT_TYPE, {"validationCode": "abc"}),
        ])
        assert resp.status_code == 200
        assert resp.json() == {"validationResponse": "abc"}

    def test_notification_dispatched(self, registry, received):
        client = _make_client(registry)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json=[
            event_grid_event("com.example.order-placed", {"id": 1}),
        ])
        assert resp.status_code == 200
        assert resp.content == b""
        assert received == [OrderPlaced(id=1)]

    def test_unknown_event_acknowledged(self, registry):
        client = _make_client(registry)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json=[event_grid_event("com.example.unknown", {})])
        assert resp.status_code == 200

    def test_invalid_json(self, registry):
        client = _make_client(registry)
        resp = client.post(
            DOMAIN_EVENTS_ROUTE, content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_non_event_body(self, registry):
        client = _make_client(registry)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json="hello")
        assert resp.status_code == 400

    def test_handler_failure_returns_500(self):
        registry = DomainEventTypeRegistry()
        registry.register_handler(BrokenHandler())
        client = _make_client(registry, raise_server_exceptions=False)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json=[
            event_grid_event("com.example.stock-depleted", {"sku": "A-1"}),
        ])
        assert resp.status_code == 500


class TestWebhookOptions:
    def test_handshake_echoes_origin(self, registry):
        client = _make_client(registry)
        resp = client.options(
            DOMAIN_EVENTS_ROUTE,
            headers={"WebHook-Request-Origin": "eventemitter.example.com"},
        )
        assert resp.status_code == 200
        assert resp.headers["WebHook-Allowed-Origin"] == "eventemitter.example.com"

    def test_without_origin(self, registry):
        client = _make_client(registry)
        resp = client.options(DOMAIN_EVENTS_ROUTE)
        assert resp.status_code == 200
        assert "WebHook-Allowed-Origin" not in resp.headers


class TestAddEndpoint:
    def test_mount_on_existing_app(self, registry, received):
        app = FastAPI()

        @app.get("/health")
        async def health():
            return {"status": "ok"}

        request_handler = EventGridRequestHandler(DomainEventGridWebhookHandler(registry))
        add_event_propagation_endpoint(app, request_handler, path="/hooks/events")
        client = TestClient(app)

        assert client.get("/health").json() == {"status": "ok"}
        resp = client.post("/hooks/events", json=event_grid_event("com.example.order-placed", {"id": 4}))
        assert resp.status_code == 200
        assert received == [OrderPlaced(id=4)]


def _require_api_key(request: Request) -> None:
    if request.headers.get("X-Api-Key") != "secret":
        raise HTTPException(status_code=401, detail="Unauthorized")


class TestRouteDependencies:
    def _client(self, registry) -> TestClient:
        request_handler = EventGridRequestHandler(DomainEventGridWebhookHandler(registry))
        app = create_webhook_app(request_handler, dependencies=[Depends(_require_api_key)])
        return TestClient(app)

    def test_rejected_before_dispatch(self, registry, received):
        client = self._client(registry)
        resp = client.post(DOMAIN_EVENTS_ROUTE, json=[
            event_grid_event("com.example.order-placed", {"id": 1}),
        ])
        assert resp.status_code == 401
        assert received == []

    def test_handshake_rejected(self, registry):
        client = self._client(registry)
        resp = client.options(
            DOMAIN_EVENTS_ROUTE,
            headers={"WebHook-Request-Origin": "eventemitter.example.com"},
        )
        assert resp.status_code == 401
        assert "WebHook-Allowed-Origin" not in resp.headers

    def test_accepted_with_credentials(self, registry, received):
        client = self._client(registry)
        resp = client.post(
            DOMAIN_EVENTS_ROUTE,
            json=[event_grid_event("com.example.order-placed", {"id": 2})],
            headers={"X-Api-Key": "secret"},
        )
        assert resp.status_code == 200
        assert received == [OrderPlaced(id=2)]

    def test_routes_hidden_from_openapi(self, registry):
        client = self._client(registry)
        assert DOMAIN_EVENTS_ROUTE not in client.app.openapi()["paths"]
