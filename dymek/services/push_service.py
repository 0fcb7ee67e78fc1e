"""
Push Service - delivery of status-change notifications to user devices.

DESIGN PRINCIPLES:
- Delivery is fire-and-forget: no confirmation is consumed by the caller
- Transports raise NotificationDeliveryError, the notifier logs it
- FCM is the production transport; the simulated transport only logs
  (local development and tests)
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from dymek.core.exceptions import NotificationDeliveryError
from dymek.models.user import NotificationMessage

logger = logging.getLogger(__name__)


def stringify_metadata(metadata: Dict[str, Any]) -> Dict[str, str]:
    """FCM data payloads only carry string values."""
    data = {}
    for key, value in metadata.items():
        if value is None:
            continue
        data[str(key)] = value if isinstance(value, str) else json.dumps(value, default=str)
    return data


class PushTransport(ABC):
    """Push-notification transport."""

    name = "abstract"

    @abstractmethod
    async def send(self, message: NotificationMessage) -> Optional[str]:
        """
        Deliver a message to one device.

        Returns:
            Provider message id, if the provider returns one

        Raises:
            NotificationDeliveryError: if the provider rejects the message
        """
        raise NotImplementedError


class FirebasePushTransport(PushTransport):
    """Firebase Cloud Messaging through the firebase_admin SDK."""

    name = "fcm"

    def __init__(self, app=None):
        self.app = app

    def build_message(self, message: NotificationMessage) -> messaging.Message:
        return messaging.Message(
            token=message.token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=stringify_metadata(message.metadata),
        )

    async def send(self, message: NotificationMessage) -> Optional[str]:
        fcm_message = self.build_message(message)
        loop = asyncio.get_running_loop()
        try:
            message_id = await loop.run_in_executor(None, partial(messaging.send, fcm_message, app=self.app))
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise NotificationDeliveryError(f"FCM rejected message: {e}") from e
        logger.info(f"FCM message sent: {message_id}")
        return message_id


class SimulatedPushTransport(PushTransport):
    """
    Log-only transport. Keeps every message it was asked to deliver.
    """

    name = "simulated"

    def __init__(self):
        self.sent: List[NotificationMessage] = []

    async def send(self, message: NotificationMessage) -> Optional[str]:
        self.sent.append(message)
        logger.info(f"SIMULATED push to {message.token[:8]}...: {message.title} | {message.body}")
        return f"simulated-{len(self.sent)}"
