"""Prompt Registry FastAPI application."""
import asyncio

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prompt_registry import logging_client
from prompt_registry.adapters.dynamodb import create_prompt_table
from prompt_registry.config import settings
from prompt_registry.container import init_container
from prompt_registry.core.exceptions import (
    CompositionResolutionError,
    NotFoundError,
    PersistenceError,
    PromptRegistryError,
    ValidationError,
    WriteConflictError,
)

# Initialize logger
logger = logging_client.setup_logger(
    settings.SERVICE_NAME,
    level=settings.LOG_LEVEL,
    noisy_loggers=settings.NOISY_LOGGERS,
)

container = init_container(settings)

# Create FastAPI app
app = FastAPI(
    title="Prompt Registry",
    version=settings.SERVICE_VERSION,
    description="Versioned prompt blocks, overrides and composition assembly"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(exc: PromptRegistryError) -> int:
    """HTTP status for a registry error."""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, CompositionResolutionError):
        return 422
    if isinstance(exc, WriteConflictError):
        return 409
    if isinstance(exc, PersistenceError):
        return 503
    return 500


@app.exception_handler(PromptRegistryError)
async def registry_error_handler(request: Request, exc: PromptRegistryError):
    status = error_status(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({status}): {exc.message}")
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


@app.exception_handler(asyncio.TimeoutError)
async def timeout_error_handler(request: Request, exc: asyncio.TimeoutError):
    logger.warning(f"{request.method} {request.url.path} timed out")
    return JSONResponse(
        status_code=504,
        content={"detail": "Composition resolution timed out", "error_code": "TIMEOUT"},
    )


@app.on_event("startup")
async def startup_event():
    """Load the catalog and prepare storage on startup."""
    logger.info(f"🚀 Starting {settings.SERVICE_NAME} v{settings.SERVICE_VERSION}")

    # Fail fast on a broken catalog
    catalog = container.prompt_catalog()
    logger.info(
        f"📚 Catalog: {len(catalog.builtins)} builtin blocks, "
        f"{len(catalog.compositions)} compositions"
    )

    logger.info(f"💾 Storage backend: {settings.STORAGE_BACKEND}")
    if settings.STORAGE_BACKEND == "dynamodb" and settings.DYNAMODB_CREATE_TABLE:
        await create_prompt_table(container.dynamodb_client(), settings.PROMPTS_TABLE_NAME)

    logger.info("✅ Prompt registry ready")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("👋 Shutting down prompt registry")


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Health status
    """
    storage = "healthy"
    if settings.STORAGE_BACKEND == "dynamodb":
        if not await container.dynamodb_client().health_check():
            storage = "unhealthy"

    return {
        "status": "healthy" if storage == "healthy" else "degraded",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "storage_backend": settings.STORAGE_BACKEND,
        "storage": storage,
    }


# Register API routers
from prompt_registry.api import compositions, prompts  # noqa: E402
app.include_router(prompts.router)
app.include_router(compositions.router)

logger.info("📦 Prompt registry module loaded")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
