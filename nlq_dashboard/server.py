from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Request, status
from sqlalchemy import text

from .api import admin_router, databases_router, queries_router
from .config import ENV_VARS_HELP, Settings, get_settings
from .database import get_session_factory
from .exceptions import ConfigurationError
from .llm.factory import create_llm_provider
from .security import limiter, setup_security_middleware
from .services import Services, build_services

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def init_services(settings: Settings) -> Services:
    """Build every shared service. Provider misconfiguration fails here, at start-up."""
    provider = create_llm_provider(settings)
    services = build_services(settings, get_session_factory(), provider)
    services.metadata_store.create_all()
    return services


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app."""
    settings: Settings = app.state.settings
    if getattr(app.state, "services", None) is None:
        logger.info("Initializing services...")
        try:
            app.state.services = init_services(settings)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {str(e)}\n{ENV_VARS_HELP}")
            raise
        logger.info("Services initialized successfully")
    settings.log_configuration()
    yield
    try:
        await app.state.services.provider.aclose()
    except Exception as e:
        logger.error(f"Error closing LLM provider: {str(e)}")


def create_app(settings: Settings = None, services: Services = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="NL Query Dashboard API",
        description="Natural language questions over registered relational databases",
        version="0.1.0",
        docs_url="/docs" if settings.is_development_mode() else None,
        redoc_url="/redoc" if settings.is_development_mode() else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    setup_security_middleware(app, settings)
    register_routers(app)
    return app


def register_routers(app: FastAPI) -> None:
    """Register all routers with the application."""

    # Health check endpoint
    @app.get("/health")
    @limiter.limit("5/minute")
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            session_factory = request.app.state.services.metadata_store.session_factory
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            return {"status": "healthy", "database": "connected"}
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Health check failed: {str(e)}"
            )

    app.include_router(queries_router)
    app.include_router(databases_router)
    app.include_router(admin_router)
