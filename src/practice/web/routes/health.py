"""Health check endpoint."""

from fastapi import APIRouter

from practice import __version__
from practice.utils.dates import to_iso, utc_now
from practice.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=to_iso(utc_now()),
    )
