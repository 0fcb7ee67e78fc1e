"""
Shared enums and value objects for markers and reports.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MarkerType(str, Enum):
    """Kinds of civic issues a citizen can report."""
    DOG_POOP = "DOG_POOP"
    ILLEGAL_PARKING = "ILLEGAL_PARKING"
    CHIMNEY_SMOKE = "CHIMNEY_SMOKE"


class RecordStatus(str, Enum):
    """
    Resolution status of a marker or report.

    NEW is the initial state. RESOLVED and REJECTED are soft end states,
    records are never deleted.
    """
    NEW = "NEW"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class LocationFilter(BaseModel):
    """Radius restriction: everything within `radius` meters of the center."""
    latitude: float = Field(..., description="Center latitude")
    longitude: float = Field(..., description="Center longitude")
    radius: float = Field(..., description="Radius in meters")


class GeoJsonPoint(BaseModel):
    type: str = "Point"
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @classmethod
    def from_coordinates(cls, latitude: float, longitude: float) -> "GeoJsonPoint":
        return cls(coordinates=[longitude, latitude])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Fixed-width ISO-8601 (always with microseconds, always UTC).

    Stored timestamps double as range keys, so their string order must match
    their time order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
