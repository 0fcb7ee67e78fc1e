"""
GeoHash Index - geohash cells for radius queries.

Markers and reports are partitioned by the geohash of their location. A radius
query is answered in two passes:

1. covering_cells() computes every cell (or shorter prefix, for covers too
   large at full precision) whose bounding box intersects the
   query circle (a superset of the answer, never a subset).
2. is_within_radius() applies the exact haversine check to the candidates
   fetched from those cells.

All functions are pure; GeoHashIndex only binds them to a GeoIndexConfig.
"""

from collections import deque
from typing import Iterable, List, NamedTuple, Optional, Set, Tuple, Union
import logging
import math

from pydantic import BaseModel, Field

from dymek.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_BASE32_INDEX = {char: index for index, char in enumerate(BASE32)}

EARTH_RADIUS_METERS = 6371000

# Absorbs float rounding between the cell distance and the final haversine filter
_EDGE_TOLERANCE_METERS = 0.01


class GeoIndexConfig(BaseModel):
    """
    Explicit geo index configuration, passed to GeoHashIndex.

    hash_precision: geohash length used as the storage partition key.
    radius_fallback_neighbors: always include the 8 cells around the center cell.
    max_covering_cells: upper bound on the radius query fan-out; larger covers
        fall back to shorter prefixes.
    """
    hash_precision: int = Field(default=5, ge=1, le=12)
    radius_fallback_neighbors: bool = True
    max_covering_cells: int = Field(default=4096, ge=9)


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


class BoundingBox(NamedTuple):
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint((self.lat_min + self.lat_max) / 2, (self.lon_min + self.lon_max) / 2)

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.lat_min <= latitude <= self.lat_max and self.lon_min <= longitude <= self.lon_max


def _to_float(value, name: str) -> float:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} not set", field=name)
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} has invalid form: {value!r}", field=name)
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number", field=name)
    return number


def validate_coordinates(latitude, longitude) -> Tuple[float, float]:
    """
    Parse and validate a coordinate pair.

    Accepts numbers and numeric strings. Out-of-range values are rejected,
    never clamped.

    Raises:
        ValidationError: missing, non-numeric, NaN/infinite or out of range
    """
    lat = _to_float(latitude, "latitude")
    lon = _to_float(longitude, "longitude")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(f"latitude out of range [-90, 90]: {lat}", field="latitude")
    if not -180.0 <= lon <= 180.0:
        raise ValidationError(f"longitude out of range [-180, 180]: {lon}", field="longitude")
    return lat, lon


def validate_radius(radius_meters) -> float:
    radius = _to_float(radius_meters, "radius")
    if radius < 0:
        raise ValidationError(f"radius must not be negative: {radius}", field="radius")
    return radius


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)
    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_METERS * c


def encode(latitude: float, longitude: float, precision: int = 5) -> str:
    """
    Encode a coordinate pair as a base32 geohash of the given length.

    Bits alternate longitude/latitude, longitude first.
    """
    if precision < 1:
        raise ValidationError(f"geohash precision must be positive: {precision}")

    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0
    chars: List[str] = []
    bits = 0
    bit_count = 0
    even = True

    while len(chars) < precision:
        if even:
            mid = (lon_lo + lon_hi) / 2
            if longitude >= mid:
                bits = (bits << 1) | 1
                lon_lo = mid
            else:
                bits <<= 1
                lon_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            if latitude >= mid:
                bits = (bits << 1) | 1
                lat_lo = mid
            else:
                bits <<= 1
                lat_hi = mid
        even = not even
        bit_count += 1
        if bit_count == 5:
            chars.append(BASE32[bits])
            bits = 0
            bit_count = 0

    return "".join(chars)


def decode_bbox(geo_hash: str) -> BoundingBox:
    """Bounding box of a geohash cell."""
    if not geo_hash:
        raise ValidationError("geohash must not be empty")

    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0
    even = True

    for char in geo_hash.lower():
        index = _BASE32_INDEX.get(char)
        if index is None:
            raise ValidationError(f"invalid geohash character {char!r} in {geo_hash!r}")
        for shift in range(4, -1, -1):
            bit = (index >> shift) & 1
            if even:
                mid = (lon_lo + lon_hi) / 2
                if bit:
                    lon_lo = mid
                else:
                    lon_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if bit:
                    lat_lo = mid
                else:
                    lat_hi = mid
            even = not even

    return BoundingBox(lat_lo, lat_hi, lon_lo, lon_hi)


def _wrap_longitude(longitude: float) -> float:
    return ((longitude + 180.0) % 360.0) - 180.0


def _longitude_gap(a: float, b: float) -> float:
    return abs(_wrap_longitude(a - b))


def neighbors(geo_hash: str) -> List[str]:
    """
    The cells surrounding geo_hash at the same precision.

    Longitude wraps around the antimeridian; rows beyond a pole do not exist,
    so polar cells have fewer than 8 neighbors.
    """
    box = decode_bbox(geo_hash)
    lat_step = box.lat_max - box.lat_min
    lon_step = box.lon_max - box.lon_min
    center = box.center
    precision = len(geo_hash)

    result: List[str] = []
    for d_lat in (-1, 0, 1):
        lat = center.latitude + d_lat * lat_step
        if lat < -90.0 or lat > 90.0:
            continue
        for d_lon in (-1, 0, 1):
            if d_lat == 0 and d_lon == 0:
                continue
            lon = _wrap_longitude(center.longitude + d_lon * lon_step)
            cell = encode(lat, lon, precision)
            if cell != geo_hash and cell not in result:
                result.append(cell)
    return result


def _closest_latitude_on_meridian(latitude: float, longitude: float, meridian: float) -> float:
    # Latitude on the full meridian that maximizes cos(distance) from the point
    phi = math.radians(latitude)
    delta_lambda = math.radians(meridian - longitude)
    return math.degrees(math.atan2(math.sin(phi), math.cos(phi) * math.cos(delta_lambda)))


def distance_to_cell(latitude: float, longitude: float, cell: Union[str, BoundingBox]) -> float:
    """
    Exact great-circle distance in meters from a point to a cell's bounding box.

    Zero when the point lies inside the cell. Otherwise the minimum over the
    four edges: along a parallel the distance grows with the longitude gap, so
    the nearest longitude in range wins; along a meridian the distance has a
    single peak, found analytically and clamped to the edge.
    """
    box = decode_bbox(cell) if isinstance(cell, str) else cell

    if box.contains(latitude, longitude):
        return 0.0

    if box.lon_min <= longitude <= box.lon_max:
        nearest_lon = longitude
    elif _longitude_gap(longitude, box.lon_min) <= _longitude_gap(longitude, box.lon_max):
        nearest_lon = box.lon_min
    else:
        nearest_lon = box.lon_max

    candidates = [
        haversine_meters(latitude, longitude, box.lat_min, nearest_lon),
        haversine_meters(latitude, longitude, box.lat_max, nearest_lon),
    ]

    for meridian in (box.lon_min, box.lon_max):
        for corner_lat in (box.lat_min, box.lat_max):
            candidates.append(haversine_meters(latitude, longitude, corner_lat, meridian))
        peak = _closest_latitude_on_meridian(latitude, longitude, meridian)
        if -90.0 <= peak <= 90.0:
            clamped = min(max(peak, box.lat_min), box.lat_max)
            candidates.append(haversine_meters(latitude, longitude, clamped, meridian))

    return min(candidates)


def _cell_bits(length: int) -> Tuple[int, int]:
    """(latitude bits, longitude bits) of a geohash of this length."""
    total = 5 * length
    return total // 2, total - total // 2


def _min_cells_needed(latitude: float, longitude: float, radius: float, length: int) -> float:
    """
    Lower bound on the number of cells of this length a circle intersects.

    Cells are largest at the equator, so the circle area divided by an
    equatorial cell's area can not exceed the real count. A circle that
    contains a pole touches the whole polar row.
    """
    lat_bits, lon_bits = _cell_bits(length)
    lat_span = math.radians(180.0 / 2 ** lat_bits)
    lon_span = math.radians(360.0 / 2 ** lon_bits)
    cell_area = lon_span * 2 * math.sin(lat_span / 2)
    angle = min(radius / EARTH_RADIUS_METERS, math.pi)
    circle_area = 2 * math.pi * (1 - math.cos(angle))
    estimate = circle_area / cell_area

    limit = radius + _EDGE_TOLERANCE_METERS
    if haversine_meters(latitude, longitude, 90.0, longitude) <= limit or \
            haversine_meters(latitude, longitude, -90.0, longitude) <= limit:
        estimate = max(estimate, 2 ** lon_bits)
    return estimate


def is_within_radius(point: Iterable[float], center: Iterable[float], radius_meters: float) -> bool:
    """Exact haversine check: point is at most radius_meters from center."""
    lat, lon = point
    center_lat, center_lon = center
    return haversine_meters(lat, lon, center_lat, center_lon) <= radius_meters


class GeoHashIndex:
    """
    Geohash partitioning bound to a GeoIndexConfig.

    encode() yields the partition key for a location; covering_cells() yields
    the partitions a radius query has to fetch.
    """

    def __init__(self, config: GeoIndexConfig = None):
        self.config = config or GeoIndexConfig()

    @property
    def precision(self) -> int:
        return self.config.hash_precision

    def encode(self, latitude, longitude) -> str:
        lat, lon = validate_coordinates(latitude, longitude)
        return encode(lat, lon, self.config.hash_precision)

    def covering_cells(self, latitude, longitude, radius_meters) -> Set[str]:
        """
        Hash prefixes whose cells intersect the circle around (latitude, longitude).

        The cover is computed at hash_precision when that takes at most
        max_covering_cells cells. Otherwise (large radius, circle containing a
        pole) it is computed again with shorter prefixes until it fits; the
        caller fetches every partition starting with a returned prefix. At
        length 1 the whole globe is 32 cells, so a cover always exists.

        Raises:
            ValidationError: invalid center or radius
        """
        lat, lon = validate_coordinates(latitude, longitude)
        radius = validate_radius(radius_meters)

        cap = self.config.max_covering_cells
        for length in range(self.config.hash_precision, 1, -1):
            if _min_cells_needed(lat, lon, radius, length) > cap:
                continue
            cells = self._cover(lat, lon, radius, length, cap)
            if cells is not None:
                break
        else:
            length = 1
            cells = self._cover(lat, lon, radius, length, None)

        logger.debug(
            f"Radius {radius:.0f}m around ({lat}, {lon}) covers {len(cells)} cells "
            f"of length {length} (precision {self.config.hash_precision})"
        )
        return cells

    def _cover(self, lat: float, lon: float, radius: float, length: int, cap: Optional[int]) -> Optional[Set[str]]:
        """
        Breadth-first expansion from the center cell: a neighbor joins (and is
        expanded further) while its distance from the center is within the
        radius. The intersecting cells form a connected region, so nothing
        reachable only through a non-intersecting cell is lost.

        Returns None as soon as the cover grows past cap.
        """
        limit = radius + _EDGE_TOLERANCE_METERS
        origin = encode(lat, lon, length)
        cells = {origin}
        if self.config.radius_fallback_neighbors:
            cells.update(neighbors(origin))

        visited = {origin}
        frontier = deque([origin])
        while frontier:
            for neighbor in neighbors(frontier.popleft()):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                if distance_to_cell(lat, lon, neighbor) > limit:
                    continue
                cells.add(neighbor)
                frontier.append(neighbor)
                if cap is not None and len(cells) > cap:
                    return None
        return cells

    def is_within_radius(self, point: Iterable[float], center: Iterable[float], radius_meters) -> bool:
        return is_within_radius(point, center, validate_radius(radius_meters))
