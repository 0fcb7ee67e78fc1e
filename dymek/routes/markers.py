"""
Marker endpoints - create, fetch, query and update the status of markers.

Domain errors propagate to the handlers registered in dymek.main.
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Header, Query, status

from dymek.core.exceptions import ValidationError
from dymek.models.common import LocationFilter
from dymek.models.marker import Marker, MarkerCreate, MarkerFilter, StatusUpdate
from dymek.services.registry import ServiceRegistry, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/markers", tags=["Markers"])

USER_ID_HEADER = "X-Dymek-User-Id"


def build_location(
    latitude: Optional[float],
    longitude: Optional[float],
    radius: Optional[float],
) -> Optional[LocationFilter]:
    """All three location parameters together, or none of them."""
    given = [value is not None for value in (latitude, longitude, radius)]
    if not any(given):
        return None
    if not all(given):
        raise ValidationError("latitude, longitude and radius must be passed together", field="location")
    return LocationFilter(latitude=latitude, longitude=longitude, radius=radius)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Marker)
async def create_marker(
    payload: MarkerCreate,
    user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    registry: ServiceRegistry = Depends(get_registry),
):
    """
    Report a new issue at a location. The reporting user comes from the
    X-Dymek-User-Id header.
    """
    logger.info(f"POST /markers - type={payload.type} user={user_id}")
    return await registry.markers.create(payload.latitude, payload.longitude, payload.type, user_id)


@router.get("", response_model=List[Marker])
async def query_markers(
    user_id: Optional[str] = None,
    type: List[str] = Query(default=[]),
    report_id: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: Optional[float] = Query(None, description="Radius in meters"),
    registry: ServiceRegistry = Depends(get_registry),
):
    marker_filter = MarkerFilter(
        user_id=user_id,
        marker_types=type,
        report_id=report_id,
        location=build_location(latitude, longitude, radius),
    )
    return await registry.markers.query(marker_filter)


@router.get("/{marker_id}", response_model=Marker)
async def get_marker(marker_id: str, registry: ServiceRegistry = Depends(get_registry)):
    return await registry.markers.get(marker_id)


@router.patch("/{marker_id}/status", response_model=Marker)
async def update_marker_status(
    marker_id: str,
    payload: StatusUpdate,
    registry: ServiceRegistry = Depends(get_registry),
):
    """
    Change the marker's status. The owner is notified in the background;
    the response does not wait for delivery.
    """
    return await registry.markers.update_status(marker_id, payload.status, payload.expected_version)
