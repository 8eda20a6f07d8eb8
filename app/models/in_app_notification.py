from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, Index, Enum as SQLEnum
from app.db import Base
from app.core.settings import settings
from app.utils.datetime import utc_now, days_from_now
import uuid
import enum


class InAppNotificationType(enum.Enum):
    info = "info"
    warning = "warning"
    error = "error"
    success = "success"


def _default_expiry():
    return days_from_now(settings.in_app_ttl_days)


class InAppNotification(Base):
    __tablename__ = "in_app_notifications"

    # use a callable for default so new UUIDs are generated per-row
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    type = Column(SQLEnum(InAppNotificationType), nullable=False, default=InAppNotificationType.info, index=True)
    category = Column(String, nullable=True, index=True)  # e.g. taskUpdates, payments, system
    read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    data = Column(JSON, nullable=True)
    expires_at = Column(DateTime, nullable=True, default=_default_expiry, index=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_in_app_notifications_user_read", "user_id", "read"),
        Index("ix_in_app_notifications_user_created", "user_id", "created_at"),
    )
