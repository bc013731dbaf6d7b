"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter

from reimbursement.db.connection import check_db_connection

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness check for load balancers."""
    return {
        "status": "healthy",
        "service": "reimbursement-workflow",
    }


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Health check including the database."""
    db_healthy = await check_db_connection()

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": "reimbursement-workflow",
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
        },
    }
