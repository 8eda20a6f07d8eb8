"""In-app (polled) notifications: create, list and read-state bookkeeping."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.in_app_notification import InAppNotification, InAppNotificationType
from app.utils.datetime import utc_now, isoformat_utc

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50


def serialize_notification(n: InAppNotification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "userId": n.user_id,
        "title": n.title,
        "body": n.body,
        "type": n.type.value if n.type else InAppNotificationType.info.value,
        "category": n.category,
        "read": bool(n.read),
        "readAt": isoformat_utc(n.read_at),
        "data": n.data,
        "expiresAt": isoformat_utc(n.expires_at),
        "createdAt": isoformat_utc(n.created_at),
        "updatedAt": isoformat_utc(n.updated_at),
    }


class InAppNotificationService:

    def __init__(self, db: Session):
        self.db = db

    def _live(self, user_id: str):
        """Query for the user's notifications that have not expired."""
        return self.db.query(InAppNotification).filter(
            InAppNotification.user_id == user_id,
            or_(InAppNotification.expires_at.is_(None), InAppNotification.expires_at > utc_now()),
        )

    def create(
        self,
        user_id: str,
        title: str,
        body: str,
        type: InAppNotificationType = InAppNotificationType.info,
        category: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> InAppNotification:
        notification = InAppNotification(
            user_id=user_id,
            title=title,
            body=body,
            type=InAppNotificationType(type),
            category=category,
            data=data,
            read=False,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(f"Created in-app notification {notification.id} for user: {user_id}")
        return notification

    def create_batch(
        self,
        user_ids: List[str],
        title: str,
        body: str,
        type: InAppNotificationType = InAppNotificationType.info,
        category: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, int]:
        """Insert one notification per user; a bad row does not stop the rest."""
        def build(uid):
            return InAppNotification(
                user_id=uid,
                title=title,
                body=body,
                type=InAppNotificationType(type),
                category=category,
                data=data,
                read=False,
            )

        created = 0
        try:
            self.db.add_all([build(uid) for uid in user_ids])
            self.db.commit()
            created = len(user_ids)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Bulk in-app insert failed ({e}); inserting one by one")
            for uid in user_ids:
                try:
                    self.db.add(build(uid))
                    self.db.commit()
                    created += 1
                except SQLAlchemyError as row_err:
                    self.db.rollback()
                    logger.error(f"Failed to create in-app notification for {uid}: {row_err}")

        preview = ",".join(user_ids[:5]) + ("..." if len(user_ids) > 5 else "")
        logger.info(f"Created batch in-app notifications: {created}/{len(user_ids)} (users={preview})")
        return {"total": len(user_ids), "created": created, "failed": len(user_ids) - created}

    def list_for_user(
        self,
        user_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
        unread_only: bool = False,
    ) -> Dict[str, Any]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        skip = max(0, skip)

        query = self._live(user_id)
        if unread_only:
            query = query.filter(InAppNotification.read.is_(False))

        total = query.count()
        rows = query.order_by(InAppNotification.created_at.desc()).offset(skip).limit(limit).all()

        return {
            "notifications": [serialize_notification(n) for n in rows],
            "unreadCount": self.unread_count(user_id),
            "hasMore": skip + limit < total,
        }

    def unread_count(self, user_id: str) -> int:
        return self._live(user_id).filter(InAppNotification.read.is_(False)).count()

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one of the user's notifications read; False if it does not exist."""
        notification = self.db.query(InAppNotification).filter(
            InAppNotification.id == notification_id,
            InAppNotification.user_id == user_id,
        ).first()
        if not notification:
            return False
        if not notification.read:
            notification.read = True
            notification.read_at = utc_now()
            self.db.commit()
        return True

    def mark_all_read(self, user_id: str) -> int:
        modified = self._live(user_id).filter(
            InAppNotification.read.is_(False),
        ).update(
            {InAppNotification.read: True, InAppNotification.read_at: utc_now()},
            synchronize_session=False,
        )
        self.db.commit()
        logger.info(f"Marked {modified} notifications as read for user: {user_id}")
        return modified

    def delete(self, notification_id: str, user_id: str) -> bool:
        deleted = self.db.query(InAppNotification).filter(
            InAppNotification.id == notification_id,
            InAppNotification.user_id == user_id,
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    def purge_expired(self) -> int:
        """Delete notifications past their expiry date."""
        purged = self.db.query(InAppNotification).filter(
            InAppNotification.expires_at.is_not(None),
            InAppNotification.expires_at <= utc_now(),
        ).delete(synchronize_session=False)
        self.db.commit()
        if purged:
            logger.info(f"Purged {purged} expired in-app notifications")
        return purged
