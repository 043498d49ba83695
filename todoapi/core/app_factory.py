from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware import Middleware

from .background import BackgroundRunner
from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from .metrics import Metrics
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.errors import http_exception_handler, request_validation_exception_handler
from ..presentation.api.middleware import (
    AuthenticateMiddleware,
    CORSMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    RecoverPanicMiddleware,
)
from ..presentation.api.responses import PrettyJSONResponse
from ..presentation.api.routers import batch as batch_router
from ..presentation.api.routers import debug as debug_router
from ..presentation.api.routers import healthcheck as healthcheck_router
from ..presentation.api.routers import todos as todos_router
from ..presentation.api.routers import tokens as tokens_router
from ..presentation.api.routers import users as users_router
from ..services.email_service import EmailService
from ..services.rate_limiter import RateLimiter
from ..services.todo_service import TodoService
from ..services.token_service import TokenService
from ..services.user_service import (
    AUTHENTICATION_TOKEN_TTL,
    DEVELOPMENT_AUTHENTICATION_TOKEN_TTL,
    UserService,
)

logger = logging.getLogger(__name__)


def build_container(
    settings: Settings,
    email_service: Optional[EmailService] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> ApplicationContainer:
    persistence = SQLitePersistence(settings.database_path, query_timeout=settings.db_query_timeout)
    if email_service is None:
        email_service = EmailService(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            sender=settings.smtp_sender,
        )
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            rps=settings.limiter_rps,
            burst=settings.limiter_burst,
            enabled=settings.limiter_enabled,
            idle_ttl=settings.limiter_idle_ttl,
            sweep_interval=settings.limiter_sweep_interval,
        )
    background = BackgroundRunner()
    token_service = TokenService(persistence, persistence)
    user_service = UserService(
        user_repository=persistence,
        permission_repository=persistence,
        token_service=token_service,
        email_service=email_service,
        background=background,
        bcrypt_rounds=settings.bcrypt_rounds,
        authentication_ttl=(
            DEVELOPMENT_AUTHENTICATION_TOKEN_TTL if settings.is_development else AUTHENTICATION_TOKEN_TTL
        ),
    )

    return ApplicationContainer(
        settings=settings,
        persistence=persistence,
        metrics=Metrics(),
        rate_limiter=rate_limiter,
        background=background,
        email_service=email_service,
        token_service=token_service,
        user_service=user_service,
        todo_service=TodoService(persistence),
    )


def create_application(
    settings: Optional[Settings] = None,
    *,
    email_service: Optional[EmailService] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)
    container = build_container(settings, email_service=email_service, rate_limiter=rate_limiter)

    # Listed outermost first.
    middleware = [
        Middleware(RecoverPanicMiddleware),
        Middleware(MetricsMiddleware, metrics=container.metrics),
        Middleware(CORSMiddleware, trusted_origins=settings.cors_trusted_origins),
        Middleware(RateLimitMiddleware, limiter=container.rate_limiter),
        Middleware(AuthenticateMiddleware, user_service=container.user_service),
    ]

    app = FastAPI(
        title="Todo API",
        version=settings.version,
        lifespan=_create_lifespan(container),
        middleware=middleware,
        default_response_class=PrettyJSONResponse,
        exception_handlers={
            StarletteHTTPException: http_exception_handler,
            RequestValidationError: request_validation_exception_handler,
        },
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.container = container  # type: ignore[attr-defined]

    app.include_router(healthcheck_router.router)
    app.include_router(users_router.router)
    app.include_router(tokens_router.router)
    app.include_router(todos_router.router)
    app.include_router(batch_router.router)
    app.include_router(debug_router.router)

    return app


def _create_lifespan(container: ApplicationContainer):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = container.settings
        logger.info("Starting server (env=%s, version=%s)", settings.env, settings.version)
        await container.rate_limiter.start()

        try:
            yield
        finally:
            await container.rate_limiter.stop()
            logger.info("Completing background tasks")
            await asyncio.to_thread(container.background.shutdown, settings.shutdown_timeout)
            container.persistence.close()
            logger.info("Stopped server")

    return lifespan
