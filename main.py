"""Main application entry point: production ready."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.routes import api_router
from app.core.config import Settings, get_settings
from app.core.exceptions import ErrorKind, InternalFailure, error_body, register_exception_handlers
from app.core.middleware import AuditLogMiddleware
from app.core.rate_limiter import RateLimiter
from app.core.security import CredentialVerifier, TokenCodec
from app.db.session import Database

logger = logging.getLogger("austa")


# ─────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────
def setup_logging(settings: Settings) -> None:
    # Set log level based on environment
    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress verbose SQLAlchemy logs in production
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ─────────────────────────────────────────────────────────────
# Global exception handler - logs full traceback
# ─────────────────────────────────────────────────────────────
async def catch_exceptions_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error("=" * 60)
        logger.error(f"500 ERROR on {request.method} {request.url.path}")
        logger.error(f"Exception: {type(exc).__name__}: {exc}")
        logger.error("Full traceback:")
        logger.error(traceback.format_exc())
        logger.error("=" * 60)
        # Detail stays in the log; the client only gets the generic message
        return JSONResponse(
            status_code=500,
            content=error_body(InternalFailure.default_message, ErrorKind.INTERNAL_FAILURE, request),
        )


# ─────────────────────────────────────────────────────────────
# Lifespan: Startup + Shutdown
# ─────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # ─── Startup ───
    settings: Settings = app.state.settings
    logger.info(f"Starting up {settings.app_name} v{app.version}...")

    await app.state.database.init()
    logger.info("Database tables initialized")

    logger.info("Application startup complete")
    yield

    # ─── Shutdown ───
    logger.info("Shutting down application...")
    await app.state.database.close()


# ─────────────────────────────────────────────────────────────
# FastAPI App
# ─────────────────────────────────────────────────────────────
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Authentication and session API for the Austa Care platform",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,  # Hide docs in prod
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        default_response_class=JSONResponse,
    )

    # Collaborators are built here and shared through app.state
    app.state.settings = settings
    app.state.database = Database(settings.database_url, echo=False)
    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.credential_verifier = CredentialVerifier.from_settings(settings)
    app.state.rate_limiter = RateLimiter.from_settings(settings)

    register_exception_handlers(app)

    # ─── Security & Performance Middleware ───
    app.add_middleware(BaseHTTPMiddleware, dispatch=catch_exceptions_middleware)
    app.add_middleware(AuditLogMiddleware, trusted_proxies=settings.trusted_proxies_list)

    # Trusted hosts (prevent DNS rebinding, host header attacks)
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.allowed_hosts_list,
    )

    # CORS: only allow your real frontend domains in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
        max_age=600,
    )

    # ─── API Router ───
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "app": settings.app_name, "version": app.version}

    return app


app = create_app()


# ─────────────────────────────────────────────────────────────
# Run with Uvicorn (only when running directly)
# ─────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug",
    )
