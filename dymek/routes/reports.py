"""
Report endpoints - reports aggregate markers under one status.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query

from dymek.models.marker import Marker, StatusUpdate
from dymek.models.report import Report, ReportCreate, ReportFilter
from dymek.routes.markers import USER_ID_HEADER, build_location
from dymek.services.registry import ServiceRegistry, get_registry

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", status_code=201, response_model=Report)
async def create_report(
    payload: ReportCreate,
    user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    registry: ServiceRegistry = Depends(get_registry),
):
    return await registry.reports.create(payload.latitude, payload.longitude, payload.type, user_id)


@router.get("", response_model=List[Report])
async def query_reports(
    user_id: Optional[str] = None,
    type: List[str] = Query(default=[]),
    status: List[str] = Query(default=[]),
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: Optional[float] = Query(None, description="Radius in meters"),
    registry: ServiceRegistry = Depends(get_registry),
):
    report_filter = ReportFilter(
        user_id=user_id,
        report_types=type,
        statuses=status,
        location=build_location(latitude, longitude, radius),
    )
    return await registry.reports.query(report_filter)


@router.get("/{report_id}", response_model=Report)
async def get_report(report_id: str, registry: ServiceRegistry = Depends(get_registry)):
    return await registry.reports.get(report_id)


@router.get("/{report_id}/markers", response_model=List[Marker])
async def get_report_markers(report_id: str, registry: ServiceRegistry = Depends(get_registry)):
    return await registry.reports.markers_of(report_id)


@router.patch("/{report_id}/status", response_model=Report)
async def update_report_status(
    report_id: str,
    payload: StatusUpdate,
    registry: ServiceRegistry = Depends(get_registry),
):
    return await registry.reports.update_status(report_id, payload.status, payload.expected_version)
