"""
Report Store - reports aggregate markers under one resolution status.

Reports use the same storage layout as markers (geo_hash of the centroid,
created_at) and answer the same kinds of queries. The markers of a report are
found through MarkerStore by their report_id back-reference.
"""

from typing import Any, Dict, List, Optional
import logging
import uuid

from dymek.core.exceptions import NotFoundError, ValidationError
from dymek.models.common import GeoJsonPoint, RecordStatus, format_timestamp, utc_now
from dymek.models.marker import Marker, MarkerFilter
from dymek.models.report import Report, ReportFilter
from dymek.services.geo_store import (
    NO_FILTER_MESSAGE,
    GeoRecordStore,
    parse_marker_type,
    parse_marker_types,
    parse_statuses,
)
from dymek.services.geohash_index import GeoHashIndex, validate_coordinates
from dymek.services.marker_store import MarkerStore
from dymek.services.status_workflow import StatusTransitionNotifier
from dymek.db.record_store import RecordStore

logger = logging.getLogger(__name__)


class ReportStore(GeoRecordStore):

    kind = "report"

    def __init__(
        self,
        store: RecordStore,
        geo_index: GeoHashIndex,
        notifier: StatusTransitionNotifier,
        markers: MarkerStore,
    ):
        super().__init__(store, geo_index, notifier)
        self.markers = markers

    async def create(self, latitude: Any, longitude: Any, type: Any, user_id: Optional[str] = None) -> Report:
        """
        Create a report with status NEW centered on (latitude, longitude).

        Raises:
            ValidationError: invalid type or coordinates (nothing is written)
        """
        report_type = parse_marker_type(type)
        lat, lon = validate_coordinates(latitude, longitude)
        now = utc_now()

        report = Report(
            id=str(uuid.uuid4()),
            status=RecordStatus.NEW,
            type=report_type,
            latitude=lat,
            longitude=lon,
            geo_json=GeoJsonPoint.from_coordinates(lat, lon),
            user_id=user_id or None,
            created_at=now,
            updated_at=now,
            geo_hash=self.geo_index.encode(lat, lon),
        )
        await self.store.put(report.to_item(), create_only=True)
        logger.info(f"Report {report.id} created: {report_type.value} at {report.geo_hash}")
        return report

    async def get(self, report_id: str) -> Report:
        if not report_id:
            raise ValidationError("Report id is required", field="id")
        items = await self.store.query_by_index("id", report_id)
        if not items:
            raise NotFoundError(f"Report {report_id} not found")
        return Report.from_item(items[0])

    async def query(self, filter: Any = None, internal: bool = False) -> List[Report]:
        """
        Query reports by centroid radius, originating user, type and/or status.
        Same guard and plan order as MarkerStore.query.
        """
        report_filter: ReportFilter = self.coerce_filter(filter, ReportFilter)
        if report_filter.is_empty() and not internal:
            raise ValidationError(NO_FILTER_MESSAGE)

        secondary: Dict[str, Any] = {}
        types = parse_marker_types(report_filter.report_types)
        if types:
            secondary["type"] = types
        statuses = parse_statuses(report_filter.statuses)
        if statuses:
            secondary["status"] = statuses

        if report_filter.location:
            items = await self.fetch_within_radius(report_filter.location)
            if report_filter.user_id:
                items = self.filter_items(items, {"user_id": report_filter.user_id})
            items = self.filter_items(items, secondary)
        elif report_filter.user_id:
            items = await self.store.query_by_index("user_id", report_filter.user_id, secondary or None)
        else:
            items = self.store.sort_items(await self.store.scan_all(secondary or None))

        return [Report.from_item(item) for item in items]

    async def markers_of(self, report_id: str) -> List[Marker]:
        """
        Markers aggregated under a report, oldest first.

        Raises:
            NotFoundError: if the report does not exist
        """
        await self.get(report_id)
        return await self.markers.query(MarkerFilter(report_id=report_id), internal=True)

    async def persist_status(
        self,
        record: Report,
        status: RecordStatus,
        expected_version: Optional[int] = None,
    ) -> Report:
        item = await self.store.update(
            record.geo_hash,
            format_timestamp(record.created_at),
            {
                "status": status.value,
                "version": record.version + 1,
                "updated_at": format_timestamp(utc_now()),
            },
            expected_version=expected_version,
        )
        return Report.from_item(item)

    async def recipients(self, record: Report) -> List[str]:
        # Reports created by aggregation have no owner of their own
        if record.user_id:
            return [record.user_id]
        markers = await self.markers_of(record.id)
        return [marker.user_id for marker in markers]
