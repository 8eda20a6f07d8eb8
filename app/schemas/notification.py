"""Pydantic schemas for notification endpoints.

Request bodies use the camelCase field names the mobile apps and the API
gateway already send. Legacy aliases (``eventKey`` for ``type``, a single
``userId`` instead of ``recipients``) are folded into one canonical shape
here so the dispatch services never see them.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.device_token import DevicePlatform
from app.models.in_app_notification import InAppNotificationType

DEFAULT_CATEGORY = "taskUpdates"


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class NotificationPayload(BaseModel):
    """Internal model for one logical notification, independent of target."""
    type: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    category: Optional[str] = None

    @property
    def resolved_category(self) -> str:
        return self.category or DEFAULT_CATEGORY


# --- Device tokens ---

class RegisterTokenRequest(BaseModel):
    """Request to register a device for push notifications."""
    token: str = Field(..., min_length=1, description="Firebase Cloud Messaging token")
    platform: DevicePlatform = Field(..., description="Device platform (ios, android, web)")
    device_id: Optional[str] = Field(None, alias="deviceId", description="Stable id of the app install")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "token": "dKzH7v...:APA91b...",
                "platform": "ios",
                "deviceId": "6F1C2A2E-4B1D-4C8E-9E57-3C1B0B7D2A10",
            }
        },
    )


class RemoveTokenRequest(BaseModel):
    """Request to unregister a device (e.g., on logout)."""
    token: str = Field(..., min_length=1, description="Firebase Cloud Messaging token to remove")


# --- Preferences ---

class ChannelFlagsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: Optional[bool] = None
    push: Optional[bool] = None
    sms: Optional[bool] = None


class PushOnlyFlagsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    push: Optional[bool] = None


class PreferencesUpdateRequest(BaseModel):
    """Partial preferences; omitted categories and channels stay as stored."""
    model_config = ConfigDict(extra="forbid")

    transactional: Optional[ChannelFlagsUpdate] = None
    taskUpdates: Optional[ChannelFlagsUpdate] = None
    taskReminders: Optional[ChannelFlagsUpdate] = None
    keywordTaskAlerts: Optional[PushOnlyFlagsUpdate] = None
    recommendedTaskAlerts: Optional[PushOnlyFlagsUpdate] = None
    helpfulInformation: Optional[ChannelFlagsUpdate] = None
    updatesNewsletters: Optional[ChannelFlagsUpdate] = None

    def changes(self) -> Dict[str, Dict[str, bool]]:
        """Supplied categories with their supplied channel flags only."""
        return self.model_dump(exclude_none=True)


# --- Push sends ---

class _SendFields(BaseModel):
    type: Optional[str] = None
    eventKey: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    category: Optional[str] = None

    @property
    def notification_type(self) -> Optional[str]:
        return self.type or self.eventKey

    def _require_content(self, message: str):
        if _blank(self.notification_type) or _blank(self.title) or _blank(self.body):
            raise ValueError(message)

    def to_payload(self) -> NotificationPayload:
        return NotificationPayload(
            type=self.notification_type,
            title=self.title,
            body=self.body,
            data=self.data,
            category=self.category,
        )


class SendNotificationRequest(_SendFields):
    """Single send: one ``userId`` or a ``recipients`` list."""
    userId: Optional[str] = None
    recipients: Optional[List[str]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "recipients": ["uid-123", "uid-456"],
                "type": "task_assigned",
                "title": "New task",
                "body": "You have been assigned a task",
                "data": {"taskId": "t-1"},
                "category": "taskUpdates",
            }
        }
    )

    @property
    def targets(self) -> List[str]:
        if self.recipients:
            return list(self.recipients)
        return [self.userId] if not _blank(self.userId) else []

    @model_validator(mode="after")
    def _check_required(self):
        if not self.targets:
            raise ValueError(
                "userId (or recipients array), type (or eventKey), title, and body are required"
            )
        self._require_content(
            "userId (or recipients array), type (or eventKey), title, and body are required"
        )
        return self


class SendBatchRequest(_SendFields):
    userIds: List[str] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_required(self):
        self._require_content("type (or eventKey), title, and body are required")
        return self


# --- In-app ---

class InAppSendRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    type: InAppNotificationType = InAppNotificationType.info
    category: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class InAppBatchRequest(BaseModel):
    userIds: List[str] = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    type: InAppNotificationType = InAppNotificationType.info
    category: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @field_validator("userIds")
    @classmethod
    def _no_blank_ids(cls, v: List[str]) -> List[str]:
        if any(_blank(uid) for uid in v):
            raise ValueError("userIds must not contain blank ids")
        return v
