"""
compilebox - Main Application Entry Point.

Accepts untrusted Java source over HTTP, compiles and runs it inside a
pool of isolated containers, and reports the outcome.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from compilebox.api import compile_router
from compilebox.config import get_settings
from compilebox.models.schemas import HealthResponse, SlotInfo
from compilebox.services import CompileService, compile_lifespan, get_compile_service

settings = get_settings()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if settings.environment == "production"
        else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        10 if settings.debug else 20
    )
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    async with compile_lifespan(app):
        yield


app = FastAPI(
    title="compilebox",
    description="""
Sandboxed compile-and-run service for single-file Java programs.

## Usage

1. Submit source with `POST /api/compile/run`
2. Poll `GET /api/compile/result/{jobId}` until the status is `completed` or `failed`
    """,
    version=settings.app_version,
    lifespan=lifespan
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": str(exc) if settings.debug else None
        }
    )


app.include_router(compile_router, prefix="/api")


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check(
    service: CompileService = Depends(get_compile_service)
) -> HealthResponse:
    """Health check endpoint with slot usage."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        slots=[SlotInfo(**slot) for slot in service.pool.summary()],
        pending_jobs=service.dispatcher.pending(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "compilebox.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug
    )
