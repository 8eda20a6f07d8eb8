"""Multi-user push sends over a bounded worker pool."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.exceptions import ValidationException
from app.schemas.notification import NotificationPayload
from app.services import audit
from app.services.push_notification import PushNotificationService
from app.services.push_transport import FcmTransport

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    total: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class SendSummary:
    sent: int = 0
    failed: int = 0

    @property
    def success(self) -> bool:
        return self.sent > 0


class BatchCoordinator:
    """Drives PushNotificationService across many users.

    Users are independent, so sends run on a thread pool capped at
    ``max_workers``. Every worker opens its own session from
    ``session_factory``. An exception for one user counts as one failed
    attempt and never stops the others.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        transport: FcmTransport,
        max_workers: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.transport = transport
        self.max_workers = max(1, max_workers or settings.batch_concurrency)

    def _dispatch(self, user_id: str, payload: NotificationPayload) -> Tuple[int, int]:
        db = self.session_factory()
        try:
            result = PushNotificationService(db, self.transport).send_to_user(user_id, payload)
            return result.sent, result.failed
        except Exception as e:
            logger.error(f"Failed to send notification to user {user_id}: {e}")
            return 0, 1
        finally:
            db.close()

    def _run(self, user_ids: List[str], payload: NotificationPayload) -> Tuple[int, int]:
        workers = min(len(user_ids), self.max_workers)
        if workers <= 1:
            results = [self._dispatch(uid, payload) for uid in user_ids]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push-batch") as pool:
                futures = [pool.submit(self._dispatch, uid, payload) for uid in user_ids]
                results = [future.result() for future in futures]

        sent = sum(r[0] for r in results)
        failed = sum(r[1] for r in results)
        return sent, failed

    def send_to_many(self, user_ids: List[str], payload: NotificationPayload) -> BatchResult:
        """Send to every user id; ``total`` is always ``len(user_ids)``."""
        if not user_ids:
            return BatchResult()
        sent, failed = self._run(list(user_ids), payload)
        result = BatchResult(total=len(user_ids), sent=sent, failed=failed)
        logger.info(f"Batch push complete: {result}")
        audit.log_batch_dispatch(payload.type, result.total, result.sent, result.failed)
        return result

    def send(self, targets: List[str], payload: NotificationPayload) -> SendSummary:
        """Validated send to one or more already-normalised targets."""
        targets = [t for t in (targets or []) if t and str(t).strip()]
        if not targets:
            raise ValidationException("At least one target user is required")
        for field in ("type", "title", "body"):
            if not str(getattr(payload, field) or "").strip():
                raise ValidationException(f"{field} is required")

        sent, failed = self._run(targets, payload)
        return SendSummary(sent=sent, failed=failed)
