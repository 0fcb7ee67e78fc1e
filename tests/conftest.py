import math

import pytest

from dymek.db.memory_store import InMemoryRecordStore
from dymek.services.geohash_index import EARTH_RADIUS_METERS, GeoHashIndex
from dymek.services.marker_store import MarkerStore
from dymek.services.push_service import SimulatedPushTransport
from dymek.services.report_store import ReportStore
from dymek.services.status_workflow import StatusTransitionNotifier
from dymek.services.user_directory import UserDirectory


WARSAW = (52.2297, 21.0122)


def destination(latitude: float, longitude: float, bearing_deg: float, distance_m: float):
    """Point reached from (latitude, longitude) along a great circle."""
    delta = distance_m / EARTH_RADIUS_METERS
    theta = math.radians(bearing_deg)
    phi1 = math.radians(latitude)
    lambda1 = math.radians(longitude)

    phi2 = math.asin(math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta))
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    lon = (math.degrees(lambda2) + 540.0) % 360.0 - 180.0
    return math.degrees(phi2), lon


@pytest.fixture
def geo_index():
    return GeoHashIndex()


@pytest.fixture
def transport():
    return SimulatedPushTransport()


@pytest.fixture
def user_records():
    return InMemoryRecordStore("users", "user_id")


@pytest.fixture
def users(user_records):
    return UserDirectory(user_records)


@pytest.fixture
def notifier(users, transport):
    return StatusTransitionNotifier(users, transport)


@pytest.fixture
def marker_records():
    return InMemoryRecordStore("markers", "geo_hash", "created_at")


@pytest.fixture
def report_records():
    return InMemoryRecordStore("reports", "geo_hash", "created_at")


@pytest.fixture
def markers(marker_records, geo_index, notifier):
    return MarkerStore(marker_records, geo_index, notifier)


@pytest.fixture
def reports(report_records, geo_index, notifier, markers):
    return ReportStore(report_records, geo_index, notifier, markers)
