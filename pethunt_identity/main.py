"""FastAPI application wiring for the identity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.errors import install_exception_handlers
from .api.routes import router
from .config import Settings, get_settings
from .domain.service import AccountService
from .repository import AccountRepository
from .security.hasher import CredentialHasher
from .security.tokens import TokenIssuer
from .transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


def create_app(settings: Settings) -> FastAPI:
    """Compose pool, coordinator, repository, hasher, service and token issuer into an app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Hold the account database pool open while the app serves requests.

        Ensures the accounts schema exists, then publishes the account service
        and token issuer on ``app.state``. The pool closes on shutdown.
        """
        pool = ConnectionPool(
            settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            timeout=settings.pool_timeout_seconds,
            open=False,
        )
        pool.open()
        repository = AccountRepository(TransactionCoordinator(pool))
        hasher = CredentialHasher(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )
        app.state.account_service = AccountService(repository, hasher)
        app.state.token_issuer = TokenIssuer.from_settings(settings)
        try:
            await repository.ensure_schema()
            logger.info("%s %s ready", settings.app_name, settings.version)
            yield
        finally:
            pool.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )
    install_exception_handlers(app)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured address."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("starting with %r", settings)
    uvicorn.run(create_app(settings), host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    run()
