"""Agent governance monitor service entry point.

Initializes the FastAPI application with:
- Structured logging
- Primary database for metrics, usage logs, alerts, scan records and policies
- Semantic analyzer (LLM gateway) connectivity check
- Governance error handlers
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agent_governance_monitor.adapters.analyzer_client import HttpSemanticAnalyzer
from agent_governance_monitor.api.router import health_router, router
from agent_governance_monitor.database import close_database, init_database
from agent_governance_monitor.errors import register_exception_handlers
from agent_governance_monitor.observability import configure_logging, get_logger
from agent_governance_monitor.settings import get_settings

logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    logger.info("Initializing primary database", service=settings.service_name)
    init_database(
        settings.database_url,
        pool_size=settings.database_pool_size,
        echo=settings.database_echo,
    )

    analyzer = HttpSemanticAnalyzer(
        analyzer_url=settings.analyzer_url,
        api_key=settings.analyzer_api_key,
        timeout_seconds=settings.analyzer_timeout_seconds,
    )
    if not await analyzer.health_check():
        logger.warning(
            "Analyzer is not reachable at startup — bias scans and policy reviews will fail until it is available",
            analyzer_url=settings.analyzer_url,
        )

    app.state.settings = settings
    logger.info("Governance monitor startup complete", analyzer_url=settings.analyzer_url)

    yield

    logger.info("Shutting down governance monitor")
    await close_database()
    logger.info("Governance monitor shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with routers and error handlers."""
    application = FastAPI(
        title=settings.service_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    register_exception_handlers(application)
    application.include_router(health_router)
    application.include_router(router, prefix="/api/v1")
    return application


app: FastAPI = create_app()
