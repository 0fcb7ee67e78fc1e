"""
Status Workflow Engine - status transitions of markers and reports.

DESIGN PRINCIPLES:
- Allowed transitions live in an explicit table (currently all-to-all)
- Transition to the current status is a no-op: no write, no notification
- Only the status (and its version) is written, nothing else
- The status write is the authoritative effect; notifying the owner happens
  afterwards in a background task and can never fail or undo the write
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Set, Union
import asyncio
import logging

from dymek.core.exceptions import ConflictError, NotFoundError, NotificationDeliveryError, ValidationError
from dymek.models.common import RecordStatus
from dymek.models.user import NotificationMessage
from dymek.services.push_service import PushTransport
from dymek.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def all_to_all_transitions() -> Dict[RecordStatus, List[RecordStatus]]:
    return {
        current: [target for target in RecordStatus if target != current]
        for current in RecordStatus
    }


class StatusTrackedStore(ABC):
    """
    A store whose records carry a workflow status (markers, reports).
    """

    kind = "record"

    @abstractmethod
    async def get(self, record_id: str) -> Any:
        """Load a record, raising NotFoundError if absent."""
        raise NotImplementedError

    @abstractmethod
    async def persist_status(self, record: Any, status: RecordStatus, expected_version: Optional[int] = None) -> Any:
        """Write the new status of a loaded record and return the updated record."""
        raise NotImplementedError

    @abstractmethod
    async def recipients(self, record: Any) -> List[str]:
        """User ids to notify about a status change of this record."""
        raise NotImplementedError


class StatusTransitionNotifier:
    """
    Validates and persists status transitions, then notifies the owners.

    Rules:
    - Unknown statuses are rejected
    - Same status is an idempotent no-op
    - Transitions outside ALLOWED_TRANSITIONS are rejected
    - Concurrent transitions on one record are last-write-wins unless the
      caller passes expected_version
    """

    ALLOWED_TRANSITIONS: Dict[RecordStatus, List[RecordStatus]] = all_to_all_transitions()

    def __init__(
        self,
        users: UserDirectory,
        transport: PushTransport,
        title: str = "Report status changed",
        enabled: bool = True,
        allowed_transitions: Optional[Dict[RecordStatus, List[RecordStatus]]] = None,
    ):
        self.users = users
        self.transport = transport
        self.title = title
        self.enabled = enabled
        if allowed_transitions is not None:
            self.ALLOWED_TRANSITIONS = allowed_transitions
        self._pending: Set[asyncio.Task] = set()

    @staticmethod
    def parse_status(status: Any) -> RecordStatus:
        try:
            return RecordStatus(status)
        except ValueError:
            raise ValidationError(f"Status not supported: {status!r}", field="status")

    def is_valid_transition(self, from_status: Union[str, RecordStatus], to_status: Union[str, RecordStatus]) -> bool:
        """
        Check if a status transition is valid. Same status is always valid (no-op).
        """
        try:
            from_enum = RecordStatus(from_status)
            to_enum = RecordStatus(to_status)
        except ValueError:
            return False

        if from_enum == to_enum:
            return True
        return to_enum in self.ALLOWED_TRANSITIONS.get(from_enum, [])

    def get_allowed_transitions(self, current_status: Union[str, RecordStatus]) -> List[str]:
        try:
            current_enum = RecordStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in self.ALLOWED_TRANSITIONS.get(current_enum, [])]

    async def transition(
        self,
        store: StatusTrackedStore,
        record_id: str,
        new_status: Any,
        expected_version: Optional[int] = None,
    ):
        """
        Move a record to new_status.

        Flow:
        1. Reject unknown status
        2. Load the record (NotFoundError if absent)
        3. Same status: return it unchanged
        4. Check the transition table and the optional expected_version
        5. Persist the status
        6. Schedule owner notification (background, best-effort)

        Returns:
            The record as persisted

        Raises:
            ValidationError, NotFoundError, ConflictError, StoreUnavailableError
        """
        target = self.parse_status(new_status)
        if not record_id:
            raise ValidationError(f"Pass ID in order to update {store.kind}", field="id")

        record = await store.get(record_id)
        old_status = record.status

        if target == old_status:
            logger.debug(f"{store.kind} {record_id} already {target.value}, nothing to do")
            return record

        if not self.is_valid_transition(old_status, target):
            allowed = self.get_allowed_transitions(old_status)
            raise ValidationError(
                f"Invalid status transition: {old_status.value} -> {target.value}. "
                f"Allowed transitions from {old_status.value}: {allowed}",
                field="status",
            )

        if expected_version is not None and record.version != expected_version:
            raise ConflictError(
                f"{store.kind} {record_id} is at version {record.version}, expected {expected_version}"
            )

        updated = await store.persist_status(record, target, expected_version)
        logger.info(f"{store.kind} {record_id} status {old_status.value} -> {target.value}")

        if self.enabled:
            self._schedule(self._dispatch(store, updated, old_status))
        return updated

    def _schedule(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight notification (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _dispatch(self, store: StatusTrackedStore, record, old_status: RecordStatus) -> int:
        try:
            user_ids = await store.recipients(record)
            delivered = 0
            for user_id in _unique(user_ids):
                if await self._notify_user(user_id, store.kind, record, old_status):
                    delivered += 1
            return delivered
        except Exception as e:
            logger.error(f"Notification dispatch for {store.kind} {record.id} failed: {e}", exc_info=True)
            return 0

    async def _notify_user(self, user_id: str, kind: str, record, old_status: RecordStatus) -> bool:
        try:
            user = await self.users.get_user(user_id)
        except NotFoundError:
            logger.warning(f"No user {user_id} to notify about {kind} {record.id}")
            return False

        if not user.registration_token:
            logger.warning(f"User {user_id} has no registration token, skipping notification")
            return False

        message = self.build_message(user.registration_token, kind, record, old_status)
        try:
            await self.transport.send(message)
        except NotificationDeliveryError as e:
            logger.warning(f"Notification to {user_id} about {kind} {record.id} not delivered: {e}")
            return False

        logger.info(f"Notified {user_id}: {kind} {record.id} {old_status.value} -> {record.status.value}")
        return True

    def build_message(self, token: str, kind: str, record, old_status: RecordStatus) -> NotificationMessage:
        metadata = record.to_item()
        metadata.update({
            "kind": kind,
            "old_status": old_status.value,
            "new_status": record.status.value,
        })
        return NotificationMessage(
            token=token,
            title=self.title,
            body=f"Your {kind} changed status from {old_status.value} to {record.status.value}",
            metadata=metadata,
        )


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
