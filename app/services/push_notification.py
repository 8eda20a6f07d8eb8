"""Push notification fan-out to all of a user's devices."""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.exceptions import DispatchError
from app.schemas.notification import NotificationPayload
from app.services import audit
from app.services.device_registry import DeviceRegistry
from app.services.preferences import Channel, PreferenceGate
from app.services.push_transport import (
    FcmTransport,
    PushMessage,
    SendOutcome,
    _convert_data_to_strings,
    is_token_invalid,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    attempted: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class PushNotificationService:
    """Sends one logical notification to every device a user has registered.

    Per call: at most one transport multicast, one bulk last-active refresh
    and one bulk delete of dead tokens. Nothing is retried here; transient
    failures are reported in ``failed`` and the token is kept.
    """

    def __init__(
        self,
        db: Session,
        transport: FcmTransport,
        gate: Optional[PreferenceGate] = None,
        registry: Optional[DeviceRegistry] = None,
    ):
        self.db = db
        self.transport = transport
        self.gate = gate or PreferenceGate(db)
        self.registry = registry or DeviceRegistry(db)

    def send_to_user(self, user_id: str, payload: NotificationPayload) -> DispatchResult:
        """Send push notification to all devices of a specific user.

        Raises:
            DispatchError: token lookup or the transport call failed.
        """
        category = payload.resolved_category

        if not self.gate.allowed(user_id, category, Channel.push):
            logger.info(
                f"Notification skipped - user preferences disabled "
                f"(user={user_id}, category={category}, type={payload.type})"
            )
            return DispatchResult()

        try:
            tokens = [t.token for t in self.registry.tokens_for_user(user_id)]
        except Exception as e:
            logger.error(f"Error fetching FCM tokens for {user_id}: {e}")
            raise DispatchError(user_id, "failed to fetch FCM tokens") from e

        if not tokens:
            logger.warning(f"No FCM tokens found for user: {user_id}")
            return DispatchResult()

        try:
            outcomes = self.transport.send_multicast(tokens, self._build_message(payload))
        except Exception as e:
            logger.error(f"Error sending push notification to {user_id}: {e}")
            raise DispatchError(user_id, str(e)) from e

        result = DispatchResult(
            attempted=len(tokens),
            sent=sum(1 for o in outcomes if o.success),
            failed=sum(1 for o in outcomes if not o.success),
        )
        self._apply_outcomes(user_id, outcomes)

        logger.info(
            f"Push notification sent (user={user_id}, type={payload.type}, "
            f"sent={result.sent}, failed={result.failed})"
        )
        audit.log_push_dispatch(user_id, payload.type, category, result.attempted, result.sent, result.failed)
        return result

    @staticmethod
    def _build_message(payload: NotificationPayload) -> PushMessage:
        data = {"type": payload.type}
        data.update(payload.data or {})
        # The type tag always wins over a caller-supplied "type" key
        data["type"] = payload.type
        return PushMessage(
            title=payload.title,
            body=payload.body,
            data=_convert_data_to_strings(data),
        )

    def _apply_outcomes(self, user_id: str, outcomes: List[SendOutcome]) -> None:
        """Refresh delivered tokens and drop dead ones; never raises."""
        delivered = [o.token for o in outcomes if o.success]
        dead = [o.token for o in outcomes if not o.success and is_token_invalid(o.error_code)]

        try:
            self.registry.touch(delivered)
        except Exception as e:
            logger.error(f"Failed to refresh last_active for {user_id}: {e}")
            self.db.rollback()

        if not dead:
            return
        try:
            removed = self.registry.prune(dead)
            logger.info(f"Removed {removed} invalid FCM tokens")
            audit.log_tokens_pruned(user_id, dead)
        except Exception as e:
            logger.error(f"Failed to prune invalid tokens for {user_id}: {e}")
            self.db.rollback()
