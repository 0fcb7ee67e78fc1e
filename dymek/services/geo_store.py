"""
Shared query plumbing for the geolocated stores (markers and reports).
"""

from typing import Any, Awaitable, Dict, Iterable, List, Optional, Type
import asyncio
import logging

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from dymek.core.exceptions import ValidationError
from dymek.db.record_store import Item, RecordStore, matches
from dymek.models.common import LocationFilter, MarkerType, RecordStatus
from dymek.services.geohash_index import GeoHashIndex, is_within_radius, validate_radius
from dymek.services.status_workflow import StatusTrackedStore, StatusTransitionNotifier

logger = logging.getLogger(__name__)

NO_FILTER_MESSAGE = "You need to provide at least one filter"


def parse_marker_type(value: Any) -> MarkerType:
    if value is None or value == "":
        raise ValidationError("You can not create a record without a type", field="type")
    try:
        return MarkerType(value)
    except ValueError:
        raise ValidationError(f"Not supported type: {value!r}", field="type")


def parse_marker_types(values: Iterable[Any]) -> List[str]:
    """Validate a filter's type list, keeping its order."""
    parsed = []
    for value in values:
        try:
            marker_type = MarkerType(value)
        except ValueError:
            raise ValidationError(f"One of passed types is not supported: {value!r}", field="types")
        if marker_type.value not in parsed:
            parsed.append(marker_type.value)
    return parsed


def parse_statuses(values: Iterable[Any]) -> List[str]:
    parsed = []
    for value in values:
        try:
            status = RecordStatus(value)
        except ValueError:
            raise ValidationError(f"One of passed statuses is not supported: {value!r}", field="statuses")
        if status.value not in parsed:
            parsed.append(status.value)
    return parsed


class GeoRecordStore(StatusTrackedStore):
    """
    Base for stores partitioned by geohash with created_at as range key.

    Subclasses define how items map to models and which filter plans they
    support; radius fetching, filter coercion and status delegation live here.
    """

    def __init__(self, store: RecordStore, geo_index: GeoHashIndex, notifier: StatusTransitionNotifier):
        self.store = store
        self.geo_index = geo_index
        self.notifier = notifier

    @staticmethod
    def coerce_filter(value: Any, model: Type[BaseModel]) -> BaseModel:
        if value is None:
            return model()
        if isinstance(value, model):
            return value
        try:
            return model.model_validate(value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid filter: {e}") from e

    async def fetch_within_radius(self, location: LocationFilter) -> List[Item]:
        """
        Every item within location.radius meters of its center.

        The covering cells are fetched concurrently; one failed fetch fails
        the whole query instead of silently under-reporting. Cells shorter
        than the partition key are fetched as prefix ranges.
        """
        radius = validate_radius(location.radius)
        cells = sorted(self.geo_index.covering_cells(location.latitude, location.longitude, radius))
        batches = await asyncio.gather(*(self._fetch_cell(cell) for cell in cells))

        center = (location.latitude, location.longitude)
        candidates = [item for batch in batches for item in batch]
        items = [
            item for item in candidates
            if is_within_radius((item["latitude"], item["longitude"]), center, radius)
        ]
        logger.debug(
            f"{self.kind} radius query: {len(cells)} cells, {len(candidates)} candidates, {len(items)} within {radius}m"
        )
        return items

    def _fetch_cell(self, cell: str) -> Awaitable[List[Item]]:
        if len(cell) >= self.geo_index.precision:
            return self.store.query_by_partition(cell)
        return self.store.query_by_partition_prefix(cell)

    @staticmethod
    def filter_items(items: List[Item], filters: Optional[Dict[str, Any]]) -> List[Item]:
        return [item for item in items if matches(item, filters)]

    async def update_status(self, record_id: str, new_status: Any, expected_version: Optional[int] = None):
        """Delegates to the status workflow; records never notify by themselves."""
        return await self.notifier.transition(self, record_id, new_status, expected_version)
