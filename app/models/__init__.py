from app.models.device_token import DeviceToken, DevicePlatform
from app.models.notification_preferences import NotificationPreferences
from app.models.in_app_notification import InAppNotification, InAppNotificationType

__all__ = [
    "DeviceToken",
    "DevicePlatform",
    "NotificationPreferences",
    "InAppNotification",
    "InAppNotificationType",
]
