"""Device token model for push notifications."""

from sqlalchemy import Column, String, DateTime, Index, text, Enum as SQLEnum
from app.db import Base
from app.utils.datetime import utc_now
import uuid
import enum


class DevicePlatform(enum.Enum):
    ios = "ios"
    android = "android"
    web = "web"


class DeviceToken(Base):
    """Stores FCM device tokens for push notifications.

    A token string belongs to exactly one row. Each user can have multiple
    devices, but at most one live token per (user_id, device_id); the
    registry removes the superseded row when a device gets a new token.
    """
    __tablename__ = "device_tokens"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    token = Column(String, nullable=False, unique=True, index=True)
    platform = Column(SQLEnum(DevicePlatform), nullable=False, index=True)
    device_id = Column(String, nullable=True, index=True)  # app-install id supplied by the client
    last_active = Column(DateTime, default=utc_now, index=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_device_tokens_user_platform", "user_id", "platform"),
        # One live token per app install; tokens without a device id are unconstrained
        Index(
            "uq_device_tokens_user_device",
            "user_id",
            "device_id",
            unique=True,
            postgresql_where=text("device_id IS NOT NULL"),
            sqlite_where=text("device_id IS NOT NULL"),
        ),
    )

    def __repr__(self):
        return f"<DeviceToken user={self.user_id} platform={self.platform.value}>"
