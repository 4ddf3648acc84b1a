"""FastAPI app entry point for the commercial vehicle catalog API."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commercialx.api.deps import close_clients
from commercialx.api.routes import router
from commercialx.config import get_settings, validate_settings
from commercialx.core.exceptions import (
    NotFoundError,
    UpstreamUnavailable,
    ValidationFailure,
)
from commercialx.core.logging import log_error, log_request, log_response, logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: validate config on startup, close clients on shutdown."""
    try:
        validate_settings()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise
    logger.info("Starting commercial vehicle catalog API...")
    yield
    logger.info("Shutting down...")
    await close_clients()


app = FastAPI(
    title="Commercial Vehicle Catalog API",
    description="Catalog reconciliation and GVWR/GAWR compliance for dealer listings",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Dealer-Id"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    log_request(request.method, request.url.path)

    response = await call_next(request)

    duration_ms = (time.time() - start) * 1000
    log_response(request.method, request.url.path, response.status_code, duration_ms)

    return response


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(
        status_code=422, content={"detail": str(exc), "fields": exc.fields}
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailable)
async def upstream_handler(request: Request, exc: UpstreamUnavailable):
    log_error("Upstream unavailable", exc, path=request.url.path)
    return JSONResponse(
        status_code=502, content={"detail": str(exc), "service": exc.service}
    )


# Routes
app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "commercialx-catalog"}
