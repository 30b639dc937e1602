"""FastAPI application entry point."""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from weekplanner.config import get_settings
from weekplanner.database import Base, async_engine
from weekplanner.dependencies import get_recipe_catalog
from weekplanner.errors import PlannerError
from weekplanner.logging_config import LoggingContext, configure_logging, get_logger
from weekplanner.routers import meal_plans_router, templates_router, weeks_router

# Configure logging on module load
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()
    logger.info(f"Starting Weekplanner API ({settings.repository_backend} backend)")

    if not settings.uses_memory_backend:
        # Create database tables if they don't exist
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized")

    yield

    logger.info("Shutting down Weekplanner API")
    await get_recipe_catalog().close()
    await async_engine.dispose()


app = FastAPI(
    title="Weekplanner API",
    description="Weekly meal planning with templates and nutrition roll-ups",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log record of a request with a request id."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    with LoggingContext(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    """Render domain errors as JSON with the error's status code."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")

    body = {"error": type(exc).__name__, "detail": exc.message}
    if exc.details is not None:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


# Include routers
app.include_router(weeks_router)
app.include_router(meal_plans_router)
app.include_router(templates_router)


@app.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok", "service": "weekplanner-api"}


@app.get("/")
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "Weekplanner API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
