"""FastAPI server for the Wholesale Storefront.

Main entry point for the API server.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import distru, health, menu, messaging
from assistant.chat import ChatAssistant
from core import __version__
from core.config import StorefrontConfig
from core.errors import ConfigurationError, OrderValidationError, UpstreamFetchError
from core.observability.logging import configure_logging, get_logger, with_correlation
from core.ordering import SubmissionGuard

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    config: StorefrontConfig = app.state.config
    missing = config.missing_settings()
    if missing:
        logger.warning(f"Storefront starting with missing settings: {', '.join(missing)}")
    logger.info(f"{config.app_name} API starting up...")

    yield

    logger.info(f"{config.app_name} API shutting down...")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error(f"Configuration error: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc), "missing": exc.missing})

    @app.exception_handler(OrderValidationError)
    async def order_validation_error(request: Request, exc: OrderValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "details": exc.details})

    @app.exception_handler(UpstreamFetchError)
    async def upstream_fetch_error(request: Request, exc: UpstreamFetchError) -> JSONResponse:
        status = exc.status_code if exc.status_code >= 400 else 500
        return JSONResponse(status_code=status, content={"error": str(exc), "details": exc.details})


def create_app(config: Optional[StorefrontConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or StorefrontConfig.from_env()
    configure_logging(level=config.log_level, json_format=config.log_json)

    app = FastAPI(
        title=f"{config.app_name} API",
        description="Wholesale menu, order pulling and order submission backed by the Distru ERP",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.config = config
    app.state.submission_guard = SubmissionGuard(window_seconds=config.order_dedup_window_seconds)
    app.state.chat_assistant = ChatAssistant(config.assistant)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-Partial-Results"],
    )

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(menu.router, prefix="/api", tags=["Menu"])
    app.include_router(distru.router, prefix="/api/distru", tags=["Distru"])
    app.include_router(messaging.router, prefix="/api", tags=["Assistant"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
