import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.config import Settings, load_settings
from app.core.errors import WalletError
from app.core.log import setup_logging
from app.db.migrations import run_migrations
from app.db.pool import close_db_pool, create_db_pool, open_db_pool
from app.routers.api import router as api_router
from app.routers.health import router as health_router
from app.services.store import RecordStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    """Build the application.

    Without an injected ``store`` the lifespan owns the connection pool:
    opened once at startup (followed by migrations when enabled), shared by
    every request through ``app.state.store``, and closed at shutdown.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store is not None:
            yield
            return
        pool = create_db_pool(settings)
        open_db_pool(pool)
        try:
            if settings.run_migrations:
                run_migrations(pool, settings.migrations_dir)
            app.state.store = RecordStore(
                pool,
                password_min_len=settings.password_min_len,
                health_timeout=settings.db_health_timeout,
            )
            yield
        finally:
            close_db_pool(pool)

    app = FastAPI(title="Wallet API", lifespan=lifespan)
    if store is not None:
        app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(api_router)

    @app.exception_handler(WalletError)
    def wallet_exc_handler(_, exc: WalletError):
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "detail": exc.detail})

    @app.exception_handler(HTTPException)
    def http_exc_handler(_, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    def validation_exc_handler(_, exc: RequestValidationError):
        errors = exc.errors()
        detail = "Invalid request"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            detail = f"Invalid {location}: {first.get('msg')}" if location else str(first.get("msg"))
        return JSONResponse(status_code=400, content={"ok": False, "detail": detail})

    return app
