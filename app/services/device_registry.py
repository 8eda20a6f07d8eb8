"""Device token registry: registration, lookup, refresh and pruning."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import NotFoundException
from app.models.device_token import DeviceToken, DevicePlatform
from app.services import audit
from app.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Device token persistence for one database session."""

    def __init__(self, db: Session):
        self.db = db

    def register(
        self,
        user_id: str,
        token: str,
        platform: DevicePlatform,
        device_id: Optional[str] = None,
    ) -> DeviceToken:
        """Register or update a device token.

        A token that already exists is updated in place (it may move to a
        different user when someone switches accounts on the same device).
        Any other token for the same (user_id, device_id) is deleted in the
        same transaction so a device keeps one live token. The unique
        indexes on ``token`` and on (user_id, device_id) reject the loser of
        a concurrent registration, which is then replayed once against the
        committed winner.
        """
        platform = DevicePlatform(platform)
        try:
            return self._save(user_id, token, platform, device_id)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent registration for token {token[:16]}..., retrying")
            return self._save(user_id, token, platform, device_id)

    def _delete_superseded(self, user_id: str, device_id: Optional[str], token: str) -> int:
        if not device_id:
            return 0
        return self.db.query(DeviceToken).filter(
            DeviceToken.user_id == user_id,
            DeviceToken.device_id == device_id,
            DeviceToken.token != token,
        ).delete(synchronize_session=False)

    def _save(self, user_id: str, token: str, platform: DevicePlatform, device_id: Optional[str]) -> DeviceToken:
        now = utc_now()
        superseded = self._delete_superseded(user_id, device_id, token)

        record = self.db.query(DeviceToken).filter(DeviceToken.token == token).first()
        created = record is None

        if record:
            record.user_id = user_id
            record.platform = platform
            record.device_id = device_id
            record.last_active = now
        else:
            record = DeviceToken(
                user_id=user_id,
                token=token,
                platform=platform,
                device_id=device_id,
                last_active=now,
            )
            self.db.add(record)
        self.db.flush()
        self.db.commit()
        self.db.refresh(record)

        if created:
            logger.info(f"Registered new FCM token for user: {user_id}")
        else:
            logger.info(f"Updated FCM token for user: {user_id}")
        if superseded:
            logger.info(f"Removed {superseded} superseded token(s) for device {device_id}")
        audit.log_token_registered(user_id, token, platform.value, device_id, created, superseded)
        return record

    def remove(self, token: str, user_id: Optional[str] = None) -> None:
        """Delete a token; scoped to ``user_id`` when one is given."""
        query = self.db.query(DeviceToken).filter(DeviceToken.token == token)
        if user_id:
            query = query.filter(DeviceToken.user_id == user_id)
        deleted = query.delete(synchronize_session=False)
        if not deleted:
            self.db.rollback()
            raise NotFoundException("FCM token not found")
        self.db.commit()
        logger.info("Removed FCM token")
        audit.log_token_removed(user_id, token)

    def tokens_for_user(self, user_id: str) -> List[DeviceToken]:
        """All of a user's tokens, most recently active first."""
        return self.db.query(DeviceToken).filter(
            DeviceToken.user_id == user_id
        ).order_by(DeviceToken.last_active.desc()).all()

    def touch(self, tokens: List[str]) -> int:
        """Refresh last_active for the given tokens in one update."""
        if not tokens:
            return 0
        count = self.db.query(DeviceToken).filter(
            DeviceToken.token.in_(tokens)
        ).update({DeviceToken.last_active: utc_now()}, synchronize_session=False)
        self.db.commit()
        return count

    def prune(self, tokens: List[str]) -> int:
        """Delete tokens the transport reported as permanently invalid."""
        if not tokens:
            return 0
        count = self.db.query(DeviceToken).filter(
            DeviceToken.token.in_(tokens)
        ).delete(synchronize_session=False)
        self.db.commit()
        return count
