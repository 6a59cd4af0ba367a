"""
AUTHGATE REST API - Main Application.

Usage:
    # Development
    uvicorn authgate.api.main:app --reload --port 8000

    # Production
    uvicorn authgate.api.main:app --host 0.0.0.0 --port 8000 --workers 4
"""
import os
import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .errors import register_error_handlers
from .routes import auth_router, users_router, health_router
from ..database.user_db import get_user_db
from ..utils.log import request_id_var, setup_logging

setup_logging()
logger = logging.getLogger(__name__)

API_TITLE = "AUTHGATE API"
API_VERSION = os.getenv("APP_VERSION", "0.1.0")
API_DESCRIPTION = """
**User accounts with password and TOTP two-factor login**

## Login

1. `POST /users/login` with username and password.
2. Without 2FA the response carries `token`.
3. With 2FA it carries `two_factor_hash`; send it as the `Authorization`
   header of `POST /users/login/2fa` together with the code.

## Enrollment

`POST /users/2fa` with a full token returns a QR code to scan; the factor is
activated by the next successful `POST /users/login/2fa`.
"""

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the users table on startup if the database is reachable."""
    logger.info(f"Starting AUTHGATE API v{API_VERSION}")

    from .deps import get_settings
    try:
        get_user_db(get_settings().database).init_schema()
    except Exception as e:
        logger.warning(f"Database initialization skipped: {e}")

    yield

    logger.info("Shutting down AUTHGATE API")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, error handlers and routes."""
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000

            if request.url.path != "/health":
                logger.info(
                    f"{request.method} {request.url.path} "
                    f"-> {response.status_code} ({elapsed_ms:.1f}ms)"
                )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
        response.headers.update(SECURITY_HEADERS)
        return response

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "authgate.api.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )
