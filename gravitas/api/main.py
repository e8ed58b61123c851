"""
gravitas.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn gravitas.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

from gravitas.api.auth import router as auth_router  # noqa: E402
from gravitas.api.deps import ConfigurationError, get_engine  # noqa: E402
from gravitas.api.routes.admin import router as admin_router  # noqa: E402
from gravitas.api.routes.communities import router as communities_router  # noqa: E402
from gravitas.api.routes.discovery import router as discovery_router  # noqa: E402
from gravitas.api.routes.events import router as events_router  # noqa: E402
from gravitas.api.routes.following import router as following_router  # noqa: E402
from gravitas.api.routes.user import router as user_router  # noqa: E402
from gravitas.services.log_buffer import install_handler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed origins: ``CORS_ALLOW_ORIGINS`` (comma-separated), else ``FRONTEND_URL``."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — attach the log buffer, warm the DB engine."""
    # Uvicorn reconfigures logging on start, so attach after that
    install_handler()

    engine = get_engine()
    logger.info("Gravitas API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Gravitas API shutting down")


app = FastAPI(
    title="Gravitas API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope — every failure is {"error": ...}
# ---------------------------------------------------------------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(content, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(ConfigurationError)
async def configuration_error(request: Request, exc: ConfigurationError):
    logger.error("Refusing %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": "Server authentication is not configured"}, status_code=500)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(communities_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(following_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(discovery_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
