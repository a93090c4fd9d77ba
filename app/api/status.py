"""
Dependency status API endpoints.
"""

from fastapi import APIRouter, Depends, Query

from app.schemas.base import BaseResponse
from app.services.status_probe import ExternalStatusProbe

router = APIRouter(prefix="/status", tags=["Status"])


def get_status_probe() -> ExternalStatusProbe:
    """Dependency to get the shared status probe."""
    from app.dependencies import get_status_probe as _get_status_probe
    return _get_status_probe()


@router.get(
    "/dependencies",
    summary="Report-generation dependency status",
    description="Cached availability of the external report-generation service"
)
async def dependency_status(
    refresh: bool = Query(False, description="Bypass the cache and test the connection now"),
    probe: ExternalStatusProbe = Depends(get_status_probe)
):
    """Get the status of the report-generation dependency."""
    result = await probe.get_status(force_refresh=refresh)
    return BaseResponse.success(result.model_dump(mode="json"), result.message)
