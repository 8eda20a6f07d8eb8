"""Per-user notification preferences, one row per user."""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from app.db import Base
from app.utils.datetime import utc_now


class NotificationPreferences(Base):
    """Channel flags per notification category.

    Each category column holds a small JSON object of channel flags, e.g.
    ``{"email": true, "push": true, "sms": false}``; the push-only categories
    hold ``{"push": true}``. ``user_id`` is unique but nullable so a row can
    exist briefly without it.
    """
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True, unique=True, index=True)

    transactional = Column(JSON, nullable=True)
    task_updates = Column("taskUpdates", JSON, nullable=True)
    task_reminders = Column("taskReminders", JSON, nullable=True)
    keyword_task_alerts = Column("keywordTaskAlerts", JSON, nullable=True)
    recommended_task_alerts = Column("recommendedTaskAlerts", JSON, nullable=True)
    helpful_information = Column("helpfulInformation", JSON, nullable=True)
    updates_newsletters = Column("updatesNewsletters", JSON, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<NotificationPreferences user={self.user_id}>"
