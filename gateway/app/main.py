"""
FastAPI Gateway Application Factory
===================================

This is the main entry point for the secret gateway: a single-tenant
forward/reverse proxy that authenticates browsers with a shared-secret
session cookie and proxies arbitrary target URLs embedded in the path.

Architecture:
    Browser → Gateway (this service) → any http(s) origin

Routes:
    - /favicon.ico       : empty 204
    - /<secret>[/<path>] : login, sets the session cookie
    - /                  : dashboard (requires session)
    - /<url>             : proxied request (requires session)

Environment Variables:
    - GATEWAY_SECRET: Shared secret (required)
    - DROP_REQUEST_HEADERS: Comma-separated inbound headers never forwarded
    - DROP_RESPONSE_HEADERS: Comma-separated upstream headers never returned
    - CORS_ALLOW_ORIGIN / _METHODS / _HEADERS / _CREDENTIALS: CORS header values
    - PUBLIC_ORIGIN: Gateway origin used in rewritten URLs (default: from request)
    - GATEWAY_HOST / GATEWAY_PORT: Bind address (default: 0.0.0.0:8080)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn gateway.app.main:create_app --factory --reload --port 8080

    Production:
        uvicorn gateway.app.main:create_app --factory --host 0.0.0.0 --port 8080 --workers 4

    Directly:
        python -m gateway.app.main
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .exceptions import ProcessingError
from .models import ErrorResponse
from .proxy import Gateway, proxy_router


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management (shared upstream HTTP client)
        - The catch-all gateway route
        - Exception handlers

    Args:
        settings: Gateway settings; loaded from the environment when omitted
        transport: Optional httpx transport for the upstream client (tests)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup: configure logging, open the pooled upstream client and build
        the gateway pipeline. Shutdown: close the upstream client.
        """
        setup_logging(settings.LOG_LEVEL)
        logger = logging.getLogger("gateway.main")

        client = httpx.AsyncClient(
            follow_redirects=False,
            timeout=None,
            transport=transport,
        )
        app.state.gateway = Gateway(settings, client)

        logger.info(
            "Gateway service started",
            extra={
                "public_origin": settings.public_origin,
                "log_level": settings.LOG_LEVEL,
            }
        )

        yield

        logger.info("Shutting down gateway service")
        await client.aclose()
        app.state.gateway = None
        logger.info("Gateway service shutdown complete")

    app = FastAPI(
        title="Secret Gateway",
        description="Single-tenant authenticating forward/reverse proxy",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Proxy router: every path is a gateway path
    app.include_router(proxy_router)

    @app.exception_handler(ProcessingError)
    async def processing_error_handler(request: Request, exc: ProcessingError) -> JSONResponse:
        """
        Target resolution and upstream failures.

        Returns:
            JSONResponse: 500 with {"error": "<message>"}
        """
        logging.getLogger("gateway.main").error(
            f"Processing error: {exc}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=str(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns the same error shape as processing errors.
        """
        logging.getLogger("gateway.main").error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "gateway.app.main:create_app",
        factory=True,
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
