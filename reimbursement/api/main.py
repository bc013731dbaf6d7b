"""
FastAPI Main Application
Entry point for the reimbursement workflow API
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reimbursement.api.routes import health, reimbursements
from reimbursement.core.config import get_settings
from reimbursement.db.connection import close_db_connection, init_models
from reimbursement.utils.logging import get_logger, setup_logging

settings = get_settings()

setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.json_logs,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]  # noqa: ARG001
    """Startup/shutdown tasks."""
    logger.info(f"Starting reimbursement workflow in {settings.ENVIRONMENT} mode")
    if settings.CREATE_TABLES_ON_STARTUP:
        await init_models()

    yield

    logger.info("Shutting down application")
    await close_db_connection()


app = FastAPI(
    title="Reimbursement Workflow API",
    description="Lifecycle and field-level write control for reimbursements",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(reimbursements.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Reimbursement Workflow API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }
