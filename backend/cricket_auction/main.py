"""FastAPI application entry point.

Cricket Auction API - live auction control and broadcast server
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from cricket_auction import __version__
from cricket_auction.api.auction import router as auction_router
from cricket_auction.config import Settings, get_settings
from cricket_auction.logging_config import bind_request, configure_logging, get_logger
from cricket_auction.services import AuctionServices, create_services
from cricket_auction.utils.errors import AuctionError, ErrorCode
from cricket_auction.utils.json_utils import ORJSONResponse
from cricket_auction.ws.gateway import router as ws_router

logger = get_logger(__name__)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add X-Request-ID header to all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        # BaseHTTPMiddleware does not handle WebSocket upgrades
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request(request_id)
        started = datetime.now(timezone.utc)

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        duration = (datetime.now(timezone.utc) - started).total_seconds()
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_s=round(duration, 3),
        )
        return response


# =============================================================================
# Error Responses
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
        "traceId": trace_id,
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AuctionError)
    async def auction_error_handler(request: Request, exc: AuctionError) -> ORJSONResponse:
        """Handle auction domain errors."""
        trace_id = get_request_id(request)
        code = exc.code

        logger.warning(
            "auction_error",
            code=code,
            message=exc.message,
            path=request.url.path,
            trace_id=trace_id,
        )

        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}

        return ORJSONResponse(
            status_code=exc.status_code,
            content=create_error_response(
                code=code,
                message=exc.message,
                details=exc.details,
                trace_id=trace_id,
            ),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Malformed request bodies are INVALID_PAYLOAD, not 422."""
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=create_error_response(
                code=ErrorCode.INVALID_PAYLOAD.value,
                message="Invalid request payload",
                details={"errors": errors},
                trace_id=get_request_id(request),
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions."""
        trace_id = get_request_id(request)

        if isinstance(exc.detail, dict) and "error" in exc.detail:
            content = dict(exc.detail)
            content["traceId"] = trace_id
        else:
            content = create_error_response(
                code="HTTP_ERROR",
                message=str(exc.detail),
                trace_id=trace_id,
            )

        return ORJSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
        """Handle unexpected exceptions."""
        trace_id = get_request_id(request)

        logger.error(
            "unexpected_error",
            error_type=type(exc).__name__,
            error_message=str(exc),
            trace_id=trace_id,
            exc_info=True,
        )

        # Don't expose internal error details in production
        message = "Internal server error"
        if settings.app_debug:
            message = f"{type(exc).__name__}: {exc}"

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(
                code=ErrorCode.INTERNAL_ERROR.value,
                message=message,
                trace_id=trace_id,
            ),
        )


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    services: AuctionServices | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to ``get_settings()``)
        services: Pre-built services; when given, the lifespan starts and
            stops them but does not build its own store, Redis or DB engine
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Application lifespan handler for startup and shutdown events."""
        logger.info("Starting application...")
        app_services = services or await create_services(settings)
        await app_services.start()
        _app.state.services = app_services
        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application...")
        try:
            await app_services.stop()
        except Exception as e:
            logger.error(f"Shutdown error: {e}")
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Cricket Auction API",
        version=__version__,
        description="Live cricket player auction control and broadcast server",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )

    # Services are usable before startup when injected (test clients without lifespan)
    if services is not None:
        app.state.services = services

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app, settings)

    @app.get("/health", tags=["Health"], summary="Health check endpoint")
    async def health_check(request: Request) -> dict[str, Any]:
        """Check application health status."""
        app_services: AuctionServices | None = getattr(request.app.state, "services", None)
        health_status: dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "services": {
                "store": "unknown",
                "redis": "disabled",
            },
        }
        if app_services is None:
            health_status["status"] = "starting"
            return health_status

        health_status["services"]["store"] = type(app_services.store).__name__
        health_status["services"]["websocket_connections"] = (
            app_services.manager.connection_count
        )
        if app_services.redis is not None:
            try:
                await app_services.redis.ping()
                health_status["services"]["redis"] = "healthy"
            except Exception as e:
                logger.warning(f"Redis health check failed: {e}")
                health_status["services"]["redis"] = "unhealthy"
                health_status["status"] = "degraded"
        return health_status

    app.include_router(auction_router, prefix="/api")
    app.include_router(ws_router)

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.app_env == "production",
        app_env=settings.app_env,
    )
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "cricket_auction.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        reload=_settings.app_debug,
    )
