"""Main FastAPI application with middleware, exception handlers, and routing."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from loguru import logger

from .core.config import SERVICE_START_TIME, config
from .core.client import get_client_manager
from .core.logging import setup_logging
from .core.exceptions import (
    PediaNoteException,
    pedianote_exception_handler,
    generic_exception_handler
)
from .core.schemas import HealthCheckResponse
from .agents.note_agent.router import router as notes_router
from .agents.tools_agent.router import router as tools_router
from .encounters.router import router as encounters_router
from .live.router import router as live_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging(config)
    logger.info(f"Starting {config.service_name} v{config.service_version}")
    logger.info(
        f"Configuration: {config.llm_model} (note temperature {config.note_temperature}, "
        f"lab temperature {config.lab_temperature})"
    )
    if not config.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; AI features will report 'API Key is missing'")

    yield

    # Shutdown
    await get_client_manager(config).close()
    logger.info("Shutting down PediaNote")


# Create FastAPI application
app = FastAPI(
    title="PediaNote Clinical Documentation Service",
    description="Pediatric consultation transcripts and lab results to structured clinical notes",
    version=config.service_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Process-Time", "X-Sample-Rate"]
)

# Add GZip compression middleware
app.add_middleware(
    GZipMiddleware,
    minimum_size=1000,
    compresslevel=6
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add request processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(round(process_time, 4))

    # Log request for monitoring
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.4f}s"
    )

    return response


# Register exception handlers
app.add_exception_handler(PediaNoteException, pedianote_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Register routers
app.include_router(encounters_router, prefix="/api")
app.include_router(tools_router, prefix="/api")
app.include_router(notes_router, prefix="/api")
app.include_router(live_router)


def _health() -> HealthCheckResponse:
    uptime = time.time() - SERVICE_START_TIME

    return HealthCheckResponse(
        status="healthy",
        service=config.service_name,
        version=config.service_version,
        model_loaded=bool(config.openai_api_key),
        uptime=round(uptime, 2)
    )


@app.get(
    "/",
    response_model=HealthCheckResponse,
    summary="Root Health Check",
    description="Basic health check endpoint"
)
async def read_root() -> HealthCheckResponse:
    """Root endpoint with basic service information."""
    return _health()


@app.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Detailed Health Check",
    description="Comprehensive health check with service details"
)
async def health_check() -> HealthCheckResponse:
    """Detailed health check endpoint."""
    return _health()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pedianote.main:app",
        host=config.host,
        port=config.port,
        reload=True,
        log_level=config.log_level.lower()
    )
