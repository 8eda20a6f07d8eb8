"""Firebase Cloud Messaging transport.

The dispatcher only needs two things from the push gateway: a multicast send
that reports one outcome per token (in token order), and a way to tell
whether a failure means the token is dead. Both live here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.exceptions import PushTransportError

logger = logging.getLogger(__name__)

# FCM rejects multicast messages with more tokens than this
FCM_MULTICAST_LIMIT = 500

TOKEN_NOT_REGISTERED = "registration-token-not-registered"
TOKEN_INVALID = "invalid-registration-token"
MISMATCHED_CREDENTIAL = "mismatched-credential"
UNKNOWN_ERROR = "unknown"

INVALID_TOKEN_CODES = frozenset({TOKEN_NOT_REGISTERED, TOKEN_INVALID})


def is_token_invalid(error_code: Optional[str]) -> bool:
    """True when the code means the token will never work again."""
    return error_code in INVALID_TOKEN_CODES


def _is_fcm_available() -> bool:
    """Check if Firebase Cloud Messaging is available."""
    try:
        import firebase_admin
        # Check if Firebase app is initialized
        firebase_admin.get_app()
        return True
    except Exception:
        return False


def _convert_data_to_strings(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Convert data payload values to strings (FCM requirement)."""
    if not data:
        return {}
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


@dataclass
class PushMessage:
    title: str
    body: str
    data: Dict[str, str]
    badge: Optional[int] = 1
    sound: str = "default"
    channel_id: str = "default"


@dataclass
class SendOutcome:
    token: str
    success: bool
    error_code: Optional[str] = None
    message_id: Optional[str] = None


def classify_error(exc: Optional[BaseException]) -> str:
    """Map a per-token FCM exception to a transport error code."""
    if exc is None:
        return UNKNOWN_ERROR

    from firebase_admin import messaging
    from firebase_admin import exceptions as fb_exceptions

    if isinstance(exc, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if isinstance(exc, messaging.SenderIdMismatchError):
        return MISMATCHED_CREDENTIAL
    if isinstance(exc, fb_exceptions.InvalidArgumentError):
        return TOKEN_INVALID
    code = getattr(exc, "code", None)
    return str(code).lower().replace("_", "-") if code else UNKNOWN_ERROR


class FcmTransport:
    """Sends push messages through firebase_admin.messaging."""

    def available(self) -> bool:
        return _is_fcm_available()

    def send_multicast(self, tokens: List[str], message: PushMessage) -> List[SendOutcome]:
        """Send one message to every token in a single multicast call."""
        if not tokens:
            return []
        if not self.available():
            raise PushTransportError("FCM not configured")

        from firebase_admin import messaging
        from firebase_admin.exceptions import FirebaseError

        if len(tokens) > FCM_MULTICAST_LIMIT:
            logger.warning(
                f"Multicast to {len(tokens)} tokens exceeds the FCM limit of {FCM_MULTICAST_LIMIT}"
            )

        multicast = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.data,
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound=message.sound,
                    channel_id=message.channel_id,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(sound=message.sound, badge=message.badge)
                )
            ),
        )

        try:
            response = messaging.send_each_for_multicast(multicast)
        except FirebaseError as e:
            logger.error(f"Multicast send failed: {e}")
            raise PushTransportError(str(e)) from e

        logger.info(
            f"Multicast result: {response.success_count} success, "
            f"{response.failure_count} failures"
        )

        outcomes = []
        for token, send_response in zip(tokens, response.responses):
            if send_response.success:
                outcomes.append(SendOutcome(token=token, success=True, message_id=send_response.message_id))
            else:
                outcomes.append(SendOutcome(
                    token=token,
                    success=False,
                    error_code=classify_error(send_response.exception),
                ))
        return outcomes


_transport = FcmTransport()


def get_push_transport() -> FcmTransport:
    """FastAPI dependency for the process-wide transport."""
    return _transport
