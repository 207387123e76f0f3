"""HTTP API for the RouterOS gateway.

Exposes the gateway operations to the panel over HTTP. Special endpoints
(connection test, interface stats, subscriber update, WAN failover) are
registered before the generic `/{router_id}/{path}` passthrough.

Errors are returned as {"message": ...} with the mapped status code:
domain errors carry their own status, protocol errors the upstream status.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from routeros_gateway import __version__
from routeros_gateway.config import Settings
from routeros_gateway.domain.exceptions import DomainError
from routeros_gateway.domain.models import BillingUpdate, DeviceRecord, FailoverRequest
from routeros_gateway.domain.services import (
    BillingService,
    FailoverService,
    GatewayService,
    RouterDirectory,
    create_directory,
)
from routeros_gateway.infra.locks import KeyedLock
from routeros_gateway.infra.observability import get_metrics_text, record_gateway_request
from routeros_gateway.infra.observability.logging import (
    bind_router_id,
    get_correlation_id,
    set_correlation_id,
)
from routeros_gateway.infra.routeros.exceptions import ProtocolError
from routeros_gateway.infra.routeros.factory import open_session

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _authorization(request: Request) -> str | None:
    return request.headers.get("Authorization")


def create_http_app(
    settings: Settings,
    directory: RouterDirectory | None = None,
    session_opener: Any = open_session,
) -> FastAPI:
    """Create FastAPI application for the gateway.

    Args:
        settings: Application settings
        directory: Router directory (default: built from settings)
        session_opener: Session factory (default: protocol client factory)

    Returns:
        FastAPI application
    """
    router_directory = directory if directory is not None else create_directory(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        yield
        await router_directory.close()

    app = FastAPI(
        title="RouterOS Gateway",
        description="Dual-protocol HTTP gateway for MikroTik RouterOS devices",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.gateway = GatewayService(router_directory, settings, session_opener)
    app.state.billing = BillingService(
        router_directory, settings, session_opener, locks=KeyedLock()
    )
    app.state.failover = FailoverService(router_directory, settings, session_opener)

    # The panel calls from the browser
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware for correlation ID
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Any:
        """Add correlation ID to request context."""
        correlation_id = request.headers.get("X-Correlation-ID", get_correlation_id())
        set_correlation_id(correlation_id)
        bind_router_id(None)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.warning(
            f"{request.method} {request.url.path}: {exc.message}",
            extra={"status_code": exc.status_code, **exc.context},
        )
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError) -> JSONResponse:
        logger.error(
            f"{request.method} {request.url.path}: {exc.message}",
            extra={"status_code": exc.status_code},
        )
        record_gateway_request(request.url.path.rsplit("/", 1)[-1], False)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint.

        Returns:
            Service health status
        """
        return {"status": "healthy", "version": __version__}

    # Metrics endpoint (Prometheus format)
    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint.

        Returns:
            Metrics in Prometheus text format
        """
        return PlainTextResponse(get_metrics_text())

    @app.post("/test/test-connection")
    async def test_connection(
        payload: dict[str, Any] | None = Body(default=None),
    ) -> JSONResponse:
        """Test an unsaved router record."""
        try:
            device = DeviceRecord.model_validate(payload or {})
        except ValidationError as e:
            return JSONResponse(
                status_code=400,
                content={"success": False, "message": f"Invalid router configuration: {e}"},
            )
        status_code, body = await app.state.gateway.test_connection(device)
        return JSONResponse(status_code=status_code, content=body)

    @app.get("/{router_id}/interface/stats")
    async def interface_stats(router_id: str, request: Request) -> list[dict[str, Any]]:
        """Interfaces with traffic counters."""
        return await app.state.gateway.interface_stats(router_id, _authorization(request))

    @app.post("/{router_id}/dhcp-client/update")
    async def update_subscriber(
        router_id: str, update: BillingUpdate, request: Request
    ) -> dict[str, Any]:
        """Renew a subscriber: comment, queue and deactivation job."""
        result = await app.state.billing.update_subscriber(
            router_id, update, _authorization(request)
        )
        return result.model_dump(mode="json")

    @app.get("/{router_id}/system/script/wan-failover-status")
    async def failover_status(router_id: str, request: Request) -> dict[str, Any]:
        """WAN failover state."""
        status = await app.state.failover.status(router_id, _authorization(request))
        return status.model_dump(mode="json", exclude_none=True)

    @app.post("/{router_id}/system/script/configure-wan-failover")
    async def configure_failover(
        router_id: str, toggle: FailoverRequest, request: Request
    ) -> dict[str, Any]:
        """Enable or disable all check-gateway routes."""
        return await app.state.failover.configure(
            router_id, toggle.enabled, _authorization(request)
        )

    @app.api_route("/{router_id}/{resource_path:path}", methods=PROXY_METHODS)
    async def proxy(router_id: str, resource_path: str, request: Request) -> JSONResponse:
        """Pass any other call through to the router's API."""
        body: dict[str, Any] | None = None
        if await request.body():
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content={"message": "Invalid JSON body"})
            if not isinstance(body, dict):
                return JSONResponse(
                    status_code=400, content={"message": "Request body must be a JSON object"}
                )

        status_code, content = await app.state.gateway.proxy(
            router_id,
            resource_path,
            request.method,
            body,
            dict(request.query_params),
            _authorization(request),
        )
        return JSONResponse(status_code=status_code, content=content)

    return app


__all__ = [
    "create_http_app",
]
