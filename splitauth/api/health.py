"""Health check endpoint with database connectivity check."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from splitauth.core import check_db_connection

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Report service health; 503 when the database is unreachable."""
    db_healthy = await check_db_connection(request.app.state.session_factory)

    # Set appropriate status code for container orchestration
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=request.app.state.settings.app_version,
        database="connected" if db_healthy else "disconnected",
    )
