"""Tests for geohash encoding, cell geometry and radius covering."""

import math
import random

import pytest

from dymek.core.exceptions import ValidationError
from dymek.services.geohash_index import (
    BASE32,
    GeoHashIndex,
    GeoIndexConfig,
    decode_bbox,
    distance_to_cell,
    encode,
    haversine_meters,
    is_within_radius,
    neighbors,
    validate_coordinates,
)

from conftest import WARSAW, destination


def covered(cells, point, precision=5) -> bool:
    """A point is covered when its full-length geohash starts with one of the cells."""
    geo_hash = encode(*point, precision)
    return any(geo_hash.startswith(cell) for cell in cells)


class TestEncoding:

    def test_known_geohashes(self):
        assert encode(42.6, -5.6, 5) == "ezs42"
        assert encode(57.64911, 10.40744, 11) == "u4pruydqqvj"

    def test_encode_is_deterministic_and_fixed_length(self):
        for precision in range(1, 13):
            first = encode(*WARSAW, precision)
            assert first == encode(*WARSAW, precision)
            assert len(first) == precision

    def test_longer_hash_extends_shorter_one(self):
        assert encode(*WARSAW, 9).startswith(encode(*WARSAW, 5))

    def test_extreme_coordinates(self):
        for lat, lon in [(90, 180), (-90, -180), (0, 0), (-90, 180), (90, -180)]:
            box = decode_bbox(encode(lat, lon, 5))
            assert box.contains(lat, lon)

    def test_decoded_box_contains_point(self):
        box = decode_bbox(encode(*WARSAW, 5))
        assert box.contains(*WARSAW)
        assert box.lat_max > box.lat_min
        assert box.lon_max > box.lon_min

    def test_decode_rejects_invalid_characters(self):
        with pytest.raises(ValidationError):
            decode_bbox("u3qa!")
        with pytest.raises(ValidationError):
            decode_bbox("")

    def test_index_uses_configured_precision(self):
        index = GeoHashIndex(GeoIndexConfig(hash_precision=7))
        assert index.encode(*WARSAW) == encode(*WARSAW, 7)

    def test_index_encode_validates(self):
        with pytest.raises(ValidationError):
            GeoHashIndex().encode(91, 0)


class TestValidateCoordinates:

    def test_accepts_numbers_and_numeric_strings(self):
        assert validate_coordinates(52.2297, 21.0122) == WARSAW
        assert validate_coordinates("52.2297", " 21.0122 ") == WARSAW
        assert validate_coordinates(0, 0) == (0.0, 0.0)

    @pytest.mark.parametrize("lat, lon", [
        ("abc", 21.0),
        (52.0, None),
        (None, None),
        (float("nan"), 21.0),
        (52.0, float("inf")),
        ("nan", 21.0),
        (True, 21.0),
        (90.0001, 0),
        (-91, 0),
        (0, 180.5),
        (0, -181),
        ("", 21.0),
    ])
    def test_rejects_invalid_values(self, lat, lon):
        with pytest.raises(ValidationError):
            validate_coordinates(lat, lon)

    def test_never_clamps(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_coordinates(100, 0)
        assert exc_info.value.field == "latitude"


class TestNeighbors:

    def test_interior_cell_has_eight_distinct_neighbors(self):
        cells = neighbors("u3qcn")
        assert len(cells) == 8
        assert len(set(cells)) == 8
        assert "u3qcn" not in cells
        assert all(len(cell) == 5 for cell in cells)

    def test_neighbors_touch_the_cell(self):
        box = decode_bbox("ezs42")
        for cell in neighbors("ezs42"):
            other = decode_bbox(cell)
            assert other.lat_min <= box.lat_max + 1e-9 and other.lat_max >= box.lat_min - 1e-9
            assert other.lon_min <= box.lon_max + 1e-9 and other.lon_max >= box.lon_min - 1e-9

    def test_wraps_around_antimeridian(self):
        cell = encode(0.01, 179.99, 4)
        wrapped = [decode_bbox(c) for c in neighbors(cell)]
        assert any(box.lon_min == -180.0 for box in wrapped)

    def test_polar_cell_has_no_row_beyond_the_pole(self):
        cells = neighbors(encode(89.99, 0.01, 3))
        assert len(cells) == 5
        assert all(decode_bbox(cell).lat_max <= 90.0 for cell in cells)


class TestDistances:

    def test_point_within_zero_radius_of_itself(self):
        rng = random.Random(7)
        for _ in range(200):
            point = (rng.uniform(-90, 90), rng.uniform(-180, 180))
            assert is_within_radius(point, point, 0)

    def test_haversine_known_distance(self):
        # Warsaw -> Krakow is roughly 252 km
        distance = haversine_meters(52.2297, 21.0122, 50.0647, 19.9450)
        assert 250_000 < distance < 254_000

    def test_haversine_across_antimeridian(self):
        assert haversine_meters(0, 179.999, 0, -179.999) < 300

    def test_distance_to_cell_is_zero_inside(self):
        cell = encode(*WARSAW, 5)
        assert distance_to_cell(*WARSAW, cell) == 0.0

    def test_distance_to_cell_never_exceeds_distance_to_its_points(self):
        rng = random.Random(11)
        for _ in range(50):
            cell = encode(rng.uniform(-70, 70), rng.uniform(-180, 180), 4)
            box = decode_bbox(cell)
            lat, lon = rng.uniform(-80, 80), rng.uniform(-180, 180)
            lower_bound = distance_to_cell(lat, lon, box)
            for i in range(5):
                for j in range(5):
                    sample_lat = box.lat_min + (box.lat_max - box.lat_min) * i / 4
                    sample_lon = box.lon_min + (box.lon_max - box.lon_min) * j / 4
                    assert lower_bound <= haversine_meters(lat, lon, sample_lat, sample_lon) + 0.5

    def test_is_within_radius_rejects_negative_radius(self):
        with pytest.raises(ValidationError):
            GeoHashIndex().is_within_radius(WARSAW, WARSAW, -1)


class TestCoveringCells:

    def test_includes_center_and_all_neighbors(self, geo_index):
        cells = geo_index.covering_cells(*WARSAW, 0)
        center = encode(*WARSAW, 5)
        assert center in cells
        assert set(neighbors(center)) <= cells

    def test_without_fallback_small_radius_is_just_the_center_cell(self):
        index = GeoHashIndex(GeoIndexConfig(radius_fallback_neighbors=False))
        center = decode_bbox("u3qcn").center
        assert index.covering_cells(center.latitude, center.longitude, 10) == {"u3qcn"}

    def test_radius_straddling_cell_border(self):
        index = GeoHashIndex(GeoIndexConfig(radius_fallback_neighbors=False))
        box = decode_bbox("u3qcn")
        on_border = (box.center.latitude, box.lon_max)
        cells = index.covering_cells(*on_border, 50)
        assert "u3qcn" in cells
        assert encode(box.center.latitude, box.lon_max + 0.0001, 5) in cells

    def test_no_false_negatives(self, geo_index):
        rng = random.Random(42)
        for _ in range(100):
            center = (rng.uniform(-60, 60), rng.uniform(-180, 180))
            radius = rng.uniform(0, 10_000)
            cells = geo_index.covering_cells(*center, radius)
            for _ in range(5):
                point = destination(*center, rng.uniform(0, 360), radius * rng.random() * 0.999)
                assert is_within_radius(point, center, radius)
                assert encode(*point, 5) in cells

    def test_no_false_negatives_across_antimeridian(self):
        index = GeoHashIndex(GeoIndexConfig(radius_fallback_neighbors=False))
        center = (10.0, 179.995)
        cells = index.covering_cells(*center, 3_000)
        east = destination(*center, 90, 2_500)
        assert east[1] < 0
        assert encode(*east, 5) in cells

    def test_no_false_negatives_near_pole(self):
        index = GeoHashIndex(GeoIndexConfig(hash_precision=3))
        center = (89.9, 45.0)
        cells = index.covering_cells(*center, 30_000)
        for bearing in range(0, 360, 15):
            point = destination(*center, bearing, 29_000)
            assert encode(*point, 3) in cells

    def test_radius_grows_cover(self, geo_index):
        small = geo_index.covering_cells(*WARSAW, 1_000)
        large = geo_index.covering_cells(*WARSAW, 20_000)
        assert small <= large
        assert len(large) > len(small)

    def test_fan_out_limit_falls_back_to_shorter_prefixes(self):
        index = GeoHashIndex(GeoIndexConfig(max_covering_cells=20))
        cells = index.covering_cells(*WARSAW, 50_000)

        assert len(cells) <= 20
        assert all(len(cell) < 5 for cell in cells)
        for bearing in range(0, 360, 10):
            assert covered(cells, destination(*WARSAW, bearing, 49_900))

    @pytest.mark.parametrize("pole", [90.0, -90.0])
    @pytest.mark.parametrize("radius", [0, 100, 5_000])
    def test_circle_centered_on_pole(self, geo_index, pole, radius):
        cells = geo_index.covering_cells(pole, 0.0, radius)

        assert len(cells) <= geo_index.config.max_covering_cells
        for lon in (-180.0, -135.5, -0.01, 0.0, 42.0, 179.99, 180.0):
            assert covered(cells, (pole, lon))
        for bearing in range(0, 360, 20):
            assert covered(cells, destination(pole, 0.0, bearing, radius * 0.999))

    def test_circle_containing_pole_off_center(self, geo_index):
        center = (89.95, 30.0)
        radius = 10_000
        assert haversine_meters(*center, 90.0, 0.0) < radius
        cells = geo_index.covering_cells(*center, radius)

        assert len(cells) <= geo_index.config.max_covering_cells
        rng = random.Random(3)
        for _ in range(200):
            point = destination(*center, rng.uniform(0, 360), radius * rng.random() * 0.999)
            assert covered(cells, point)
        assert covered(cells, (90.0, -150.0))

    def test_large_radius(self, geo_index):
        cells = geo_index.covering_cells(*WARSAW, 200_000)

        assert len(cells) <= geo_index.config.max_covering_cells
        rng = random.Random(5)
        for _ in range(300):
            point = destination(*WARSAW, rng.uniform(0, 360), 200_000 * rng.random() * 0.999)
            assert covered(cells, point)

    def test_radius_spanning_the_globe(self, geo_index):
        cells = geo_index.covering_cells(0.0, 0.0, 25_000_000)
        assert cells == {first + second for first in BASE32 for second in BASE32}

    def test_single_character_cover_is_never_rejected(self):
        index = GeoHashIndex(GeoIndexConfig(max_covering_cells=9))
        assert index.covering_cells(0.0, 0.0, 25_000_000) == set(BASE32)

    @pytest.mark.parametrize("radius", [-5, "abc", float("nan"), None])
    def test_invalid_radius(self, geo_index, radius):
        with pytest.raises(ValidationError):
            geo_index.covering_cells(*WARSAW, radius)

    def test_invalid_center(self, geo_index):
        with pytest.raises(ValidationError):
            geo_index.covering_cells(math.nan, 0, 100)
