"""In-app notification endpoints (polled by the apps)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging

from app.db import get_db
from app.exceptions import NotFoundException
from app.schemas.notification import InAppSendRequest, InAppBatchRequest
from app.services.auth import AuthContext, require_service, require_user_id
from app.services.in_app import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    InAppNotificationService,
    serialize_notification,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/in-app")


@router.get("")
def list_notifications(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    skip: int = Query(0, ge=0),
    unreadOnly: bool = Query(False),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    data = InAppNotificationService(db).list_for_user(user_id, limit=limit, skip=skip, unread_only=unreadOnly)
    return {"success": True, "data": data}


@router.get("/unread-count")
def unread_count(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": {"count": InAppNotificationService(db).unread_count(user_id)}}


@router.patch("/mark-all-read")
def mark_all_read(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    modified = InAppNotificationService(db).mark_all_read(user_id)
    return {"success": True, "data": {"modifiedCount": modified}}


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: str,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    if not InAppNotificationService(db).mark_read(notification_id, user_id):
        raise NotFoundException("Notification not found")
    return {"success": True, "message": "Notification marked as read"}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: str,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    if not InAppNotificationService(db).delete(notification_id, user_id):
        raise NotFoundException("Notification not found")
    return {"success": True, "message": "Notification deleted"}


# Service-to-service endpoints

@router.post("/send")
def send_in_app(
    request: InAppSendRequest,
    _service: AuthContext = Depends(require_service),
    db: Session = Depends(get_db),
):
    notification = InAppNotificationService(db).create(
        user_id=request.userId,
        title=request.title,
        body=request.body,
        type=request.type,
        category=request.category,
        data=request.data,
    )
    return {"success": True, "data": serialize_notification(notification)}


@router.post("/send-batch")
def send_in_app_batch(
    request: InAppBatchRequest,
    _service: AuthContext = Depends(require_service),
    db: Session = Depends(get_db),
):
    result = InAppNotificationService(db).create_batch(
        user_ids=request.userIds,
        title=request.title,
        body=request.body,
        type=request.type,
        category=request.category,
        data=request.data,
    )
    return {"success": True, "data": result}
