"""
Service registry - builds the component graph from settings.

Components never read settings themselves: everything they need (geo index
configuration, collection names, notification title) is passed in here.

Rules:
- USE_MOCK_DB=true: in-memory record stores and the simulated push transport
- otherwise: Firestore record stores, and FCM unless PUSH_PROVIDER=simulated
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging

from dymek.core.settings import Settings
from dymek.db.memory_store import InMemoryRecordStore
from dymek.db.record_store import RecordStore
from dymek.services.geohash_index import GeoHashIndex
from dymek.services.marker_store import MarkerStore
from dymek.services.push_service import FirebasePushTransport, PushTransport, SimulatedPushTransport
from dymek.services.report_store import ReportStore
from dymek.services.status_workflow import StatusTransitionNotifier
from dymek.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class ServiceRegistry:
    geo_index: GeoHashIndex
    markers: MarkerStore
    reports: ReportStore
    users: UserDirectory
    notifier: StatusTransitionNotifier
    transport: PushTransport
    record_stores: Dict[str, RecordStore]


def _store_factory(settings: Settings, db=None) -> Callable[..., RecordStore]:
    if settings.USE_MOCK_DB:
        logger.info("[REGISTRY] Using in-memory record stores")
        return InMemoryRecordStore

    from dymek.config.firebase import get_db
    from dymek.db.firestore_store import FirestoreRecordStore

    client = db if db is not None else get_db()
    logger.info("[REGISTRY] Using Firestore record stores")

    def make(name: str, partition_key: str, range_key: Optional[str] = None) -> RecordStore:
        return FirestoreRecordStore(client, name, partition_key, range_key)

    return make


def build_push_transport(settings: Settings) -> PushTransport:
    provider = (settings.PUSH_PROVIDER or "fcm").lower()
    if settings.USE_MOCK_DB or provider == "simulated":
        logger.info("[REGISTRY] Push provider: simulated")
        return SimulatedPushTransport()
    if provider != "fcm":
        raise ValueError(f"Unknown PUSH_PROVIDER: {settings.PUSH_PROVIDER!r} (expected 'fcm' or 'simulated')")

    from dymek.config.firebase import initialize_firebase_app

    logger.info("[REGISTRY] Push provider: fcm")
    return FirebasePushTransport(initialize_firebase_app())


def build_registry(
    settings: Settings,
    db=None,
    transport: Optional[PushTransport] = None,
) -> ServiceRegistry:
    make_store = _store_factory(settings, db)
    record_stores = {
        "markers": make_store(settings.MARKERS_COLLECTION, "geo_hash", "created_at"),
        "reports": make_store(settings.REPORTS_COLLECTION, "geo_hash", "created_at"),
        "users": make_store(settings.USERS_COLLECTION, "user_id"),
    }

    geo_index = GeoHashIndex(settings.geo_index_config())
    users = UserDirectory(record_stores["users"])
    transport = transport or build_push_transport(settings)
    notifier = StatusTransitionNotifier(
        users,
        transport,
        title=settings.NOTIFICATION_TITLE,
        enabled=settings.NOTIFICATIONS_ENABLED,
    )
    markers = MarkerStore(record_stores["markers"], geo_index, notifier)
    reports = ReportStore(record_stores["reports"], geo_index, notifier, markers)

    return ServiceRegistry(
        geo_index=geo_index,
        markers=markers,
        reports=reports,
        users=users,
        notifier=notifier,
        transport=transport,
        record_stores=record_stores,
    )


# Global registry instance (singleton pattern)
_registry: Optional[ServiceRegistry] = None


def get_registry() -> ServiceRegistry:
    """
    Get or create the global ServiceRegistry.
    """
    global _registry
    if _registry is None:
        from dymek.core.settings import settings
        _registry = build_registry(settings)
    return _registry


def set_registry(registry: Optional[ServiceRegistry]) -> None:
    """Replace (or reset with None) the global registry."""
    global _registry
    _registry = registry
