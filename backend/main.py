"""
DataProSim - FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dataprosim import __version__
from dataprosim.api import ai, community, health, projects, users
from dataprosim.core.config import Settings, get_settings
from dataprosim.core.exceptions import register_exception_handlers
from dataprosim.core.logging import RequestLoggingMiddleware, setup_logging
from dataprosim.services.ai_service import AIService, build_ai_service
from dataprosim.services.providers import ProviderRegistry
from dataprosim.services.seed import seed_demo_data
from dataprosim.services.storage import InMemoryStorage

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    storage: Optional[InMemoryStorage] = None,
    ai_service: Optional[AIService] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the application.

    Storage and the AI service can be injected; otherwise a fresh in-memory
    store and a provider-backed AIService are created from settings.
    """
    app_settings = app_settings or get_settings()

    setup_logging(
        log_level="DEBUG" if app_settings.debug else app_settings.log_level,
        log_dir=app_settings.log_dir or None,
        json_logs=app_settings.log_json,
    )

    registry: Optional[ProviderRegistry] = None
    if ai_service is None:
        registry = ProviderRegistry.from_settings(app_settings, http_client=http_client)
        ai_service = build_ai_service(registry, app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan - startup and shutdown events."""
        logger.info(f"Starting {app_settings.app_name} v{__version__}...")
        logger.info(f"Debug mode: {app_settings.debug}")
        logger.info(
            "Provider chains: mentor=%s tips=%s challenge=%s",
            app_settings.mentor_chain,
            app_settings.tips_chain,
            app_settings.challenge_chain,
        )

        if app_settings.seed_demo_data:
            await seed_demo_data(app.state.storage, app_settings.demo_user_id)

        yield

        logger.info("Shutting down...")
        if registry is not None:
            await registry.close()
        logger.info("Cleanup complete")

    app = FastAPI(
        title=app_settings.app_name,
        description="AI-mentored data science learning platform",
        version=__version__,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.storage = storage if storage is not None else InMemoryStorage()
    app.state.ai_service = ai_service

    register_exception_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list({app_settings.frontend_url, *app_settings.cors_origins}),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = app_settings.api_prefix
    app.include_router(health.router, tags=["Health"])
    app.include_router(ai.router, prefix=prefix, tags=["AI"])
    app.include_router(users.router, prefix=f"{prefix}/user", tags=["User"])
    app.include_router(projects.router, prefix=f"{prefix}/projects", tags=["Projects"])
    app.include_router(community.router, prefix=prefix, tags=["Community"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
