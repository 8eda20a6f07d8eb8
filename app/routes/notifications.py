"""Push notification API endpoints: device tokens, preferences and sends."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.db import get_db, get_session_factory
from app.schemas.notification import (
    RegisterTokenRequest,
    RemoveTokenRequest,
    PreferencesUpdateRequest,
    SendNotificationRequest,
    SendBatchRequest,
)
from app.services.auth import AuthContext, get_auth_context, require_service, require_user_id
from app.services.batch import BatchCoordinator
from app.services.device_registry import DeviceRegistry
from app.services.preferences import get_preferences, update_preferences
from app.services.push_transport import FcmTransport, get_push_transport

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/token")
def register_token(
    request: RegisterTokenRequest,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    """Register or update an FCM token.

    Called by the mobile/web app after obtaining a token and user permission.
    Re-registering a known token updates it; a new token for a known
    deviceId replaces that device's old token.
    """
    record = DeviceRegistry(db).register(
        user_id=user_id,
        token=request.token,
        platform=request.platform,
        device_id=request.device_id,
    )
    return {
        "success": True,
        "data": {
            "token": record.token,
            "platform": record.platform.value,
            "deviceId": record.device_id,
        },
        "message": "FCM token registered successfully",
    }


@router.delete("/token")
def remove_token(
    request: RemoveTokenRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Remove an FCM token (logout or notifications disabled)."""
    DeviceRegistry(db).remove(request.token, user_id=ctx.user_id)
    return {"success": True, "message": "FCM token removed successfully"}


@router.get("/preferences")
def read_preferences(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": get_preferences(db, user_id)}


@router.put("/preferences")
def write_preferences(
    request: PreferencesUpdateRequest,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    preferences = update_preferences(db, user_id, request.changes())
    return {
        "success": True,
        "data": preferences,
        "message": "Notification preferences updated successfully",
    }


# Service-to-service endpoints

@router.post("/send")
def send_notification(
    request: SendNotificationRequest,
    _service: AuthContext = Depends(require_service),
    session_factory=Depends(get_session_factory),
    transport: FcmTransport = Depends(get_push_transport),
):
    """Send one notification to a single userId or a recipients list."""
    summary = BatchCoordinator(session_factory, transport).send(request.targets, request.to_payload())
    return {
        "success": summary.success,
        "data": {"sent": summary.sent, "failed": summary.failed},
        "message": f"Notification sent to {summary.sent} device(s)",
    }


@router.post("/send-batch")
def send_batch_notification(
    request: SendBatchRequest,
    _service: AuthContext = Depends(require_service),
    session_factory=Depends(get_session_factory),
    transport: FcmTransport = Depends(get_push_transport),
):
    """Send the same notification to many users."""
    result = BatchCoordinator(session_factory, transport).send_to_many(request.userIds, request.to_payload())
    return {
        "success": True,
        "data": result.to_dict(),
        "message": f"Notifications sent to {result.sent} user(s)",
    }
