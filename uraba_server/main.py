# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Uraba tracking server - Main FastAPI application."""

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from uraba_server.config import settings
from uraba_server.database import init_db
from uraba_server.errors import AppError
from uraba_server.routers import auth, packages, tokens
from uraba_server.services.tokens import sweep_expired_tokens, token_store

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    app.state.token_sweep_task = asyncio.create_task(
        sweep_expired_tokens(token_store, settings.token_sweep_interval_seconds)
    )
    logger.info("Token sweep every %ss", settings.token_sweep_interval_seconds)
    yield
    app.state.token_sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.token_sweep_task


app = FastAPI(
    title="Logistica Uraba",
    description="Package delivery tracking API",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in exc.errors() if len(err["loc"]) > 1})
    return JSONResponse(
        status_code=400,
        content={"error": "Missing or invalid fields", "fields": fields},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth.router, prefix="/api")
app.include_router(tokens.router, prefix="/api")
app.include_router(packages.router, prefix="/api")


@app.get("/")
async def root():
    """Service info."""
    return {
        "name": "Logistica Uraba",
        "version": VERSION,
        "api": "/api",
        "docs": "/api/docs",
    }


@app.get("/api/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}
