"""
Pydantic models for markers - single geolocated issue reports.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dymek.models.common import (
    LocationFilter,
    MarkerType,
    RecordStatus,
    format_timestamp,
    parse_timestamp,
)


class Marker(BaseModel):
    """
    A single reported issue.

    Immutable after creation except `status` (and `version`, which follows
    it) and `report_id`. Stored under (geo_hash, created_at).
    """
    id: str = Field(..., description="Unique marker id (uuid4)")
    latitude: float
    longitude: float
    type: MarkerType
    user_id: str = Field(..., description="Owner (reporting user)")
    status: RecordStatus = RecordStatus.NEW
    created_at: datetime = Field(..., description="Creation time, also the storage range key")
    geo_hash: str = Field(..., description="Geohash cell, the storage partition key")
    report_id: Optional[str] = Field(None, description="Aggregating report, if any")
    version: int = Field(default=1, description="Incremented on every status write")

    def to_item(self) -> Dict[str, Any]:
        item = self.model_dump(mode="json")
        item["created_at"] = format_timestamp(self.created_at)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Marker":
        data = dict(item)
        data["created_at"] = parse_timestamp(data.get("created_at"))
        return cls.model_validate(data)


class MarkerFilter(BaseModel):
    """
    Marker query options. All dimensions are optional, but an empty filter is
    only accepted from internal callers.

    marker_types are kept as raw strings so unsupported values surface as a
    domain ValidationError from the store.
    """
    user_id: Optional[str] = None
    marker_types: List[str] = Field(default_factory=list)
    location: Optional[LocationFilter] = None
    report_id: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.user_id or self.marker_types or self.location or self.report_id)


class MarkerCreate(BaseModel):
    """Request body for creating a marker (the owner comes from the request header)."""
    latitude: float = Field(..., description="Latitude coordinate")
    longitude: float = Field(..., description="Longitude coordinate")
    type: str = Field(..., description="One of DOG_POOP, ILLEGAL_PARKING, CHIMNEY_SMOKE")

    class Config:
        json_schema_extra = {
            "example": {
                "latitude": 52.2297,
                "longitude": 21.0122,
                "type": "ILLEGAL_PARKING",
            }
        }


class StatusUpdate(BaseModel):
    """Request body for a status transition."""
    status: str = Field(..., description="NEW, ACKNOWLEDGED, RESOLVED or REJECTED")
    expected_version: Optional[int] = Field(
        None, description="Optional optimistic concurrency check against the stored version"
    )

    class Config:
        json_schema_extra = {"example": {"status": "RESOLVED", "expected_version": 1}}
