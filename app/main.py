"""
FastAPI application main module.
"""
import os
import json
import logging

# Initialize Sentry BEFORE importing anything else (for best error capture)
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

sentry_dsn = os.getenv('SENTRY_DSN')
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            FastApiIntegration(),
            StarletteIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests traced
        environment=os.getenv('ENVIRONMENT', 'development'),
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error monitoring")

from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from app.adapters.redis_storage import RedisContextStorage
from app.core.settings import EngineSettings
from app.middleware.error_handling import setup_error_handling
from app.routers.context import router as context_router
from app.routers.health import router as health_router
from app.services.context_engine import ContextEngine
from app.services.typo_correction import TypoCorrectionService
from app.utils.logging_config import RequestLoggingMiddleware, get_logger, setup_logging

dotenv_override = os.getenv("DOTENV_OVERRIDE", "false").lower() == "true"
load_dotenv(override=dotenv_override)

logger = get_logger(__name__)


def _parse_json_list(name: str) -> Optional[list]:
    raw = os.getenv(name)
    try:
        value = json.loads(raw) if raw else None
    except json.JSONDecodeError:
        logger.warning(f"{name} is not valid JSON, ignoring")
        return None
    return value if isinstance(value, list) else None


def _build_storage(settings: EngineSettings):
    if os.getenv("CONTEXT_PERSISTENCE_ENABLED", "false").lower() != "true":
        return None
    storage = RedisContextStorage(
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        ttl_seconds=settings.session_timeout_minutes * 60
    )
    return storage if storage.enabled else None


def _build_typo_service() -> Optional[TypoCorrectionService]:
    try:
        return TypoCorrectionService()
    except ValueError as e:
        logger.warning(f"Typo correction disabled: {e}")
        return None


def create_app(
    settings: Optional[EngineSettings] = None,
    engine: Optional[ContextEngine] = None,
    storage=None,
    typo_service: Optional[TypoCorrectionService] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators default to environment-driven instances; tests pass their
    own. The engine lives on app.state for the lifetime of the app.
    """
    setup_logging()

    settings = settings or EngineSettings.from_env()
    app_name = os.getenv('APP_NAME', 'Campus Context Engine')
    app_version = os.getenv('APP_VERSION', '1.0.0')
    environment = os.getenv('ENVIRONMENT', 'development')

    logger.info(f"Starting {app_name} v{app_version} in {environment} environment")

    app = FastAPI(
        title=app_name,
        description="Conversation context tracking for the bilingual campus assistant",
        version=app_version
    )

    app.state.settings = settings
    app.state.context_engine = engine or ContextEngine(settings=settings)
    app.state.context_storage = storage if storage is not None else _build_storage(settings)
    app.state.typo_service = typo_service if typo_service is not None else _build_typo_service()

    setup_error_handling(app)
    app.add_middleware(RequestLoggingMiddleware)

    cors_origins = _parse_json_list('CORS_ORIGINS')
    if cors_origins:
        logger.info(f"CORS origins: {len(cors_origins)} configured")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-Conversation-ID", "Accept"],
        )

    app.include_router(health_router)
    app.include_router(context_router, prefix="/api/v1")
    return app


app = create_app()
