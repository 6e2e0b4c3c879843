"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tasks_api import __version__
from tasks_api.dependencies import RepositoryDep
from tasks_api.errors import StorageError


router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, repository: RepositoryDep) -> JSONResponse:
    """Health check endpoint for monitoring.

    Returns:
        JSON response with the database status; 503 when the ping fails.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "components": {"database": "healthy"},
        "service": {
            "name": request.app.title,
            "version": __version__,
        },
    }

    try:
        await repository.ping()
    except StorageError:
        health_status["status"] = "unhealthy"
        health_status["components"]["database"] = "unhealthy"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)
