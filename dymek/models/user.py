"""
User models for push notification recipients.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from dymek.models.common import format_timestamp, parse_timestamp


class User(BaseModel):
    user_id: str = Field(..., description="User identifier")
    registration_token: Optional[str] = Field(None, description="Push registration token")
    updated_at: Optional[datetime] = Field(None, description="Last token update")

    def to_item(self) -> Dict[str, Any]:
        item = self.model_dump(mode="json")
        item["updated_at"] = format_timestamp(self.updated_at) if self.updated_at else None
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "User":
        data = dict(item)
        data["updated_at"] = parse_timestamp(data.get("updated_at"))
        return cls.model_validate(data)


class UserUpdate(BaseModel):
    """Register (or clear) the push registration token of a user."""
    registration_token: Optional[str] = Field(None, description="Push registration token")


class NotificationMessage(BaseModel):
    """A push notification addressed to one device token."""
    token: str
    title: str
    body: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
