"""
Pydantic models for reports - aggregations of markers under one status.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dymek.models.common import (
    GeoJsonPoint,
    LocationFilter,
    MarkerType,
    RecordStatus,
    format_timestamp,
    parse_timestamp,
)


class Report(BaseModel):
    """
    An aggregation of one or more markers, geolocated by its centroid.
    Markers point at their report through Marker.report_id.
    """
    id: str
    status: RecordStatus = RecordStatus.NEW
    type: MarkerType
    latitude: float
    longitude: float
    geo_json: GeoJsonPoint = Field(..., description="Centroid as a GeoJSON point")
    user_id: Optional[str] = Field(None, description="Originating user, if any")
    created_at: datetime
    updated_at: datetime
    geo_hash: str
    version: int = 1

    def to_item(self) -> Dict[str, Any]:
        item = self.model_dump(mode="json")
        item["created_at"] = format_timestamp(self.created_at)
        item["updated_at"] = format_timestamp(self.updated_at)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Report":
        data = dict(item)
        data["created_at"] = parse_timestamp(data.get("created_at"))
        data["updated_at"] = parse_timestamp(data.get("updated_at"))
        return cls.model_validate(data)


class ReportFilter(BaseModel):
    user_id: Optional[str] = None
    report_types: List[str] = Field(default_factory=list)
    location: Optional[LocationFilter] = None
    statuses: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.user_id or self.report_types or self.location or self.statuses)


class ReportCreate(BaseModel):
    latitude: float = Field(..., description="Centroid latitude")
    longitude: float = Field(..., description="Centroid longitude")
    type: str = Field(..., description="One of DOG_POOP, ILLEGAL_PARKING, CHIMNEY_SMOKE")

    class Config:
        json_schema_extra = {
            "example": {
                "latitude": 52.2297,
                "longitude": 21.0122,
                "type": "CHIMNEY_SMOKE",
            }
        }
