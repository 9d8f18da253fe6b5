"""
FastAPI application for the Code Reveal companion app.
This module sets up the API server with routes, middleware, and error handling.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.error_handlers import base_exception_handler, unhandled_exception_handler
from app.core.exceptions import BaseAppException
from app.db.code_store import CodeStore, create_code_store
from app.middleware.cache_control import CacheControlMiddleware
from app.routes import codes, health, internal, realtime, session
from app.services.host_platform import HostPlatformClient
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.realtime import RealtimeBroker
from app.services.trigger_handler import TriggerHandler
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_fastapi_instrumentator import metrics as instrumentator_metrics

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("app.main")


def create_app(
    settings: Optional[Settings] = None,
    *,
    code_store: Optional[CodeStore] = None,
    host_platform: Optional[HostPlatformClient] = None,
    realtime_broker: Optional[RealtimeBroker] = None,
    instrument: bool = True,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use instead of ``get_settings()``
        code_store: Pre-built store (tests pass an in-memory store)
        host_platform: Pre-built host platform client
        realtime_broker: Pre-built realtime broker
        instrument: Attach Prometheus HTTP instrumentation

    Returns:
        Configured FastAPI application
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Application startup...")
        app.state.settings = app_settings

        store = code_store
        if store is None:
            logger.info(
                f"Initializing {app_settings.CODE_STORE_BACKEND} code store..."
            )
            app_settings.ensure_data_dirs()
            store = create_code_store(
                app_settings.CODE_STORE_BACKEND, app_settings.CODE_STORE_PATH
            )

        platform = host_platform
        if platform is None and app_settings.HOST_API_URL:
            logger.info("Initializing host platform client...")
            platform = HostPlatformClient(settings=app_settings)
        elif platform is None:
            logger.info(
                "Host platform not configured - private messages and post "
                "creation disabled"
            )

        broker = realtime_broker or RealtimeBroker(
            max_queue_size=app_settings.REALTIME_QUEUE_SIZE
        )
        dispatcher = NotificationDispatcher(
            broker=broker, host_platform=platform, settings=app_settings
        )
        trigger_handler = TriggerHandler(
            store=store,
            dispatcher=dispatcher,
            settings=app_settings,
            host_platform=platform,
        )

        # Assign services to app state
        app.state.code_store = store
        app.state.host_platform = platform
        app.state.realtime_broker = broker
        app.state.notification_dispatcher = dispatcher
        app.state.trigger_handler = trigger_handler
        logger.info(f"Listening for trigger command {app_settings.TRIGGER_COMMAND}")

        # Yield control to the application
        yield

        # Shutdown
        logger.info("Application shutdown...")
        if platform is not None:
            await platform.close()
        await store.close()

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings

    # Configure CORS
    # Toggle credentials off when wildcard is used (Starlette forbids wildcard + credentials)
    origins = app_settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False if origins == ["*"] else True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Polling clients must never see a cached code status
    app.add_middleware(CacheControlMiddleware)

    if instrument:
        instrumentator = Instrumentator(
            should_group_status_codes=False,
            should_ignore_untemplated=True,
            should_respect_env_var=False,  # Always enable metrics
            excluded_handlers=["/health", "/healthcheck", "/metrics"],
        )
        instrumentator.add(instrumentator_metrics.default())
        instrumentator.instrument(app)
        logger.info("Prometheus metrics instrumentation initialized")

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthcheck")
    async def healthcheck():
        return {"status": "healthy"}

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(session.router, prefix="/api", tags=["Session"])
    app.include_router(codes.router, prefix="/api", tags=["Codes"])
    app.include_router(realtime.router, prefix="/api", tags=["Realtime"])
    app.include_router(internal.router, prefix="/internal", tags=["Internal"])

    # Register specific application exceptions first
    app.add_exception_handler(BaseAppException, base_exception_handler)  # type: ignore[arg-type]
    # Then register generic exception handler as fallback
    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # Bind to 0.0.0.0 only in DEBUG mode (container/development)
    # Otherwise bind to 127.0.0.1 for local security
    host = "0.0.0.0" if settings.DEBUG else "127.0.0.1"

    uvicorn.run(
        "app.main:app",
        host=host,
        port=8000,
        reload=settings.DEBUG,
    )
