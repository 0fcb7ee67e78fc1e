"""
Marker Store - creation and lookup of geolocated markers.

Storage layout:
- partition key: geo_hash (GEOHASH_PRECISION characters)
- range key: created_at (fixed-width ISO timestamp)
- secondary lookups: id, user_id, report_id

Query plans, first match wins:
1. location  -> covering cells, exact radius, then user/type/report in memory
2. user_id   -> owner index, then type/report
3. report_id -> report index, then type
4. types     -> filtered scan
5. nothing   -> full scan, internal callers only
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional
import logging
import uuid

from dymek.core.exceptions import ConflictError, NotFoundError, ValidationError
from dymek.models.common import RecordStatus, format_timestamp, utc_now
from dymek.models.marker import Marker, MarkerFilter
from dymek.services.geo_store import (
    NO_FILTER_MESSAGE,
    GeoRecordStore,
    parse_marker_type,
    parse_marker_types,
)
from dymek.services.geohash_index import validate_coordinates

logger = logging.getLogger(__name__)


class MarkerStore(GeoRecordStore):
    """
    Markers keyed by (geo_hash, created_at).
    """

    kind = "marker"

    # Two markers in one cell created within the same microsecond collide on
    # the storage key; the later one moves forward in time.
    CREATE_ATTEMPTS = 3

    async def create(
        self,
        latitude: Any,
        longitude: Any,
        type: Any,
        user_id: Optional[str],
        report_id: Optional[str] = None,
    ) -> Marker:
        """
        Create a marker with status NEW.

        Args:
            latitude, longitude: numbers or numeric strings
            type: MarkerType value
            user_id: reporting user
            report_id: optional aggregating report

        Raises:
            ValidationError: on any missing/invalid field (nothing is written)
        """
        marker_type = parse_marker_type(type)
        lat, lon = validate_coordinates(latitude, longitude)
        if not user_id:
            raise ValidationError("You can not post markers as not identified user", field="user_id")

        geo_hash = self.geo_index.encode(lat, lon)
        created_at = utc_now()
        marker_id = str(uuid.uuid4())

        for attempt in range(1, self.CREATE_ATTEMPTS + 1):
            marker = Marker(
                id=marker_id,
                latitude=lat,
                longitude=lon,
                type=marker_type,
                user_id=user_id,
                status=RecordStatus.NEW,
                created_at=created_at,
                geo_hash=geo_hash,
                report_id=report_id,
            )
            try:
                await self.store.put(marker.to_item(), create_only=True)
                break
            except ConflictError:
                if attempt == self.CREATE_ATTEMPTS:
                    raise
                logger.debug(f"Storage key ({geo_hash}, {created_at}) taken, retrying")
                created_at += timedelta(microseconds=1)

        logger.info(f"Marker {marker_id} created: {marker_type.value} at {geo_hash} by {user_id}")
        return marker

    async def get(self, marker_id: str) -> Marker:
        """
        Raises:
            NotFoundError: if no marker has this id
        """
        if not marker_id:
            raise ValidationError("Marker id is required", field="id")
        items = await self.store.query_by_index("id", marker_id)
        if not items:
            raise NotFoundError(f"Marker {marker_id} not found")
        return Marker.from_item(items[0])

    async def query(self, filter: Any = None, internal: bool = False) -> List[Marker]:
        """
        Query markers by location radius, owner, report and/or type.

        Args:
            filter: MarkerFilter or an equivalent dict
            internal: allow an empty filter (full scan) for trusted callers

        Raises:
            ValidationError: empty filter from an untrusted caller, unsupported
                type, invalid location
        """
        marker_filter: MarkerFilter = self.coerce_filter(filter, MarkerFilter)
        if marker_filter.is_empty() and not internal:
            raise ValidationError(NO_FILTER_MESSAGE)

        types = parse_marker_types(marker_filter.marker_types)

        if marker_filter.location:
            items = await self.fetch_within_radius(marker_filter.location)
            secondary: Dict[str, Any] = {}
            if marker_filter.user_id:
                secondary["user_id"] = marker_filter.user_id
            if types:
                secondary["type"] = types
            if marker_filter.report_id:
                secondary["report_id"] = marker_filter.report_id
            items = self.filter_items(items, secondary)

        elif marker_filter.user_id:
            filters: Dict[str, Any] = {}
            if types:
                filters["type"] = types
            if marker_filter.report_id:
                filters["report_id"] = marker_filter.report_id
            items = await self.store.query_by_index("user_id", marker_filter.user_id, filters)

        elif marker_filter.report_id:
            items = await self.store.query_by_index(
                "report_id", marker_filter.report_id, {"type": types} if types else None
            )

        elif types:
            items = self.store.sort_items(await self.store.scan_all({"type": types}))

        else:
            items = self.store.sort_items(await self.store.scan_all())

        return [Marker.from_item(item) for item in items]

    async def assign_report(self, marker_id: str, report_id: Optional[str]) -> Marker:
        """Set (or clear) the report a marker belongs to."""
        marker = await self.get(marker_id)
        item = await self.store.update(
            marker.geo_hash,
            format_timestamp(marker.created_at),
            {"report_id": report_id},
        )
        logger.info(f"Marker {marker_id} assigned to report {report_id}")
        return Marker.from_item(item)

    async def persist_status(
        self,
        record: Marker,
        status: RecordStatus,
        expected_version: Optional[int] = None,
    ) -> Marker:
        item = await self.store.update(
            record.geo_hash,
            format_timestamp(record.created_at),
            {"status": status.value, "version": record.version + 1},
            expected_version=expected_version,
        )
        return Marker.from_item(item)

    async def recipients(self, record: Marker) -> List[str]:
        return [record.user_id]
