"""FastAPI webhook endpoint for Event Grid deliveries.

Endpoints:
  POST    /eventgrid/domainevents  - EventGridEvent or CloudEvent deliveries
  OPTIONS /eventgrid/domainevents  - CloudEvents webhook validation handshake

Usage::

    from event_propagation.subscription.api import create_webhook_app

    app = create_webhook_app(request_handler)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from fastapi import APIRouter, FastAPI, Request, Response, params
from fastapi.responses import JSONResponse

from event_propagation.core.enums import EventGridRequestType
from event_propagation.core.errors import MalformedEnvelopeError

from .request import EventGridRequestHandler

logger = logging.getLogger(__name__)

DOMAIN_EVENTS_ROUTE = "/eventgrid/domainevents"


def add_event_propagation_endpoint(
    app: FastAPI,
    request_handler: EventGridRequestHandler,
    path: str = DOMAIN_EVENTS_ROUTE,
    dependencies: Sequence[params.Depends] = (),
) -> FastAPI:
    """Mount the webhook routes on an existing application.

    *dependencies* run before every webhook request, e.g. an
    authorization check that raises ``HTTPException(401)``.  The routes
    are left out of the OpenAPI schema.
    """
    router = APIRouter(dependencies=list(dependencies))

    @router.post(path, include_in_schema=False)
    async def handle_event_grid_event(request: Request) -> Response:
        try:
            body = json.loads(await request.body())
        except ValueError:
            logger.warning("Rejecting webhook request with an invalid JSON body")
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        try:
            result = await request_handler.handle_request(body)
        except MalformedEnvelopeError as exc:
            logger.warning("Rejecting webhook request: %s", exc)
            return JSONResponse({"error": str(exc)}, status_code=400)

        if result.request_type == EventGridRequestType.SUBSCRIPTION:
            return JSONResponse(result.response)
        return Response(status_code=200)

    @router.options(path, include_in_schema=False)
    async def handle_webhook_validation(request: Request) -> Response:
        origin = request.headers.get("WebHook-Request-Origin")
        headers = {"Allow": "POST, OPTIONS"}
        if origin:
            headers["WebHook-Allowed-Origin"] = origin
            headers["WebHook-Allowed-Rate"] = "*"
        return Response(status_code=200, headers=headers)

    app.include_router(router)
    return app


def create_webhook_app(
    request_handler: EventGridRequestHandler,
    path: str = DOMAIN_EVENTS_ROUTE,
    dependencies: Sequence[params.Depends] = (),
) -> FastAPI:
    """Create a FastAPI application that only serves the webhook."""
    app = FastAPI(title="Event Propagation Webhook")
    app.state.request_handler = request_handler
    return add_event_propagation_endpoint(app, request_handler, path, dependencies)
