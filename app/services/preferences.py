"""Notification preferences: storage helpers and the send gate.

Preferences are a fixed set of categories, each carrying its own subset of
delivery channels. Rows are created lazily with ``DEFAULT_PREFERENCES`` the
first time a user is looked up, using an atomic insert-if-absent so
concurrent first lookups converge on one row.
"""

import copy
import enum
import logging
from typing import Dict, FrozenSet, Optional, Union

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ValidationException
from app.models.notification_preferences import NotificationPreferences
from app.services import audit

logger = logging.getLogger(__name__)


class Channel(str, enum.Enum):
    email = "email"
    push = "push"
    sms = "sms"


class Category(str, enum.Enum):
    transactional = "transactional"
    task_updates = "taskUpdates"
    task_reminders = "taskReminders"
    keyword_task_alerts = "keywordTaskAlerts"
    recommended_task_alerts = "recommendedTaskAlerts"
    helpful_information = "helpfulInformation"
    updates_newsletters = "updatesNewsletters"


ALL_CHANNELS: FrozenSet[Channel] = frozenset(Channel)
PUSH_ONLY: FrozenSet[Channel] = frozenset({Channel.push})

CATEGORY_CHANNELS: Dict[Category, FrozenSet[Channel]] = {
    Category.transactional: ALL_CHANNELS,
    Category.task_updates: ALL_CHANNELS,
    Category.task_reminders: ALL_CHANNELS,
    Category.keyword_task_alerts: PUSH_ONLY,
    Category.recommended_task_alerts: PUSH_ONLY,
    Category.helpful_information: ALL_CHANNELS,
    Category.updates_newsletters: ALL_CHANNELS,
}

PUSH_ONLY_CATEGORIES = frozenset(c for c, chans in CATEGORY_CHANNELS.items() if chans == PUSH_ONLY)

# ORM attribute holding each category's JSON flags
_CATEGORY_ATTRS: Dict[Category, str] = {
    Category.transactional: "transactional",
    Category.task_updates: "task_updates",
    Category.task_reminders: "task_reminders",
    Category.keyword_task_alerts: "keyword_task_alerts",
    Category.recommended_task_alerts: "recommended_task_alerts",
    Category.helpful_information: "helpful_information",
    Category.updates_newsletters: "updates_newsletters",
}

DEFAULT_PREFERENCES: Dict[str, Dict[str, bool]] = {
    Category.transactional.value: {"email": False, "push": True, "sms": True},
    Category.task_updates.value: {"email": True, "push": True, "sms": True},
    Category.task_reminders.value: {"email": True, "push": True, "sms": True},
    Category.keyword_task_alerts.value: {"push": True},
    Category.recommended_task_alerts.value: {"push": True},
    Category.helpful_information.value: {"email": True, "push": True, "sms": True},
    Category.updates_newsletters.value: {"email": True, "push": True, "sms": True},
}

# Named policies for answers the gate gives without a stored decision
FAIL_CLOSED = False  # no user id: never send to an unidentified user
FAIL_OPEN = True     # preference store unavailable: a store outage must not mute everything


def default_preferences() -> Dict[str, Dict[str, bool]]:
    return copy.deepcopy(DEFAULT_PREFERENCES)


def _is_blank(user_id: Optional[str]) -> bool:
    return not isinstance(user_id, str) or not user_id.strip()


def _insert_defaults(db: Session, user_id: str) -> None:
    """Insert the default row unless one already exists for ``user_id``."""
    table = NotificationPreferences.__table__
    values = {"user_id": user_id, **default_preferences()}
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert_fn(table).values(values).on_conflict_do_nothing(index_elements=["user_id"])
        db.execute(stmt)
        db.commit()
        return

    # Other backends: no native upsert; a unique violation means another writer won
    try:
        db.execute(insert(table).values(values))
        db.commit()
    except IntegrityError:
        db.rollback()


def get_or_create_preferences(db: Session, user_id: str) -> Optional[NotificationPreferences]:
    """Return the user's preferences row, creating the default row if needed."""
    prefs = db.query(NotificationPreferences).filter(NotificationPreferences.user_id == user_id).first()
    if prefs:
        return prefs

    _insert_defaults(db, user_id)
    prefs = db.query(NotificationPreferences).filter(NotificationPreferences.user_id == user_id).first()
    if prefs:
        logger.info(f"Ensured default notification preferences for user: {user_id}")
    return prefs


def _stored_flags(prefs: NotificationPreferences, category: Category) -> Optional[dict]:
    return getattr(prefs, _CATEGORY_ATTRS[category])


def serialize_preferences(prefs: Optional[NotificationPreferences]) -> Dict[str, Dict[str, bool]]:
    """All seven categories; categories missing from the row fall back to defaults."""
    result = default_preferences()
    if prefs is None:
        return result
    for category in Category:
        stored = _stored_flags(prefs, category)
        if stored is not None:
            result[category.value] = dict(stored)
    return result


class PreferenceGate:
    """Decides whether a notification may go out on a channel."""

    def __init__(self, db: Session):
        self.db = db

    def allowed(self, user_id: Optional[str], category: Union[Category, str], channel: Union[Channel, str]) -> bool:
        if _is_blank(user_id):
            logger.warning(f"Invalid userId passed to preference check: {user_id!r}")
            return FAIL_CLOSED

        try:
            channel = Channel(channel)
        except ValueError:
            logger.warning(f"Unknown notification channel {channel!r}, denying")
            return False

        try:
            prefs = get_or_create_preferences(self.db, user_id)
            if prefs is None:
                logger.warning(
                    f"No preferences obtainable for user {user_id}, allowing {category} by default"
                )
                return FAIL_OPEN

            try:
                category = Category(category)
            except ValueError:
                # Categories added after this release are allowed until configured
                logger.warning(f"Unknown notification category {category!r}, allowing by default")
                return True

            flags = _stored_flags(prefs, category)
            if flags is None:
                logger.warning(f"Category {category.value} missing for user {user_id}, allowing by default")
                return True

            if category in PUSH_ONLY_CATEGORIES:
                return channel == Channel.push and flags.get("push") is True

            if all(c.value in flags for c in ALL_CHANNELS):
                return flags.get(channel.value) is True

            return False
        except Exception as e:
            logger.error(f"Error checking notification preferences for {user_id}: {e}", exc_info=True)
            self.db.rollback()
            return FAIL_OPEN


def get_preferences(db: Session, user_id: Optional[str]) -> Dict[str, Dict[str, bool]]:
    """Current preferences; a blank user id gets the defaults, nothing is stored."""
    if _is_blank(user_id):
        logger.warning(f"Invalid userId passed to get_preferences: {user_id!r}")
        return default_preferences()
    return serialize_preferences(get_or_create_preferences(db, user_id))


def update_preferences(db: Session, user_id: Optional[str], changes: Dict[str, Dict[str, bool]]) -> Dict[str, Dict[str, bool]]:
    """Merge ``changes`` (category -> channel flags) over the stored preferences.

    Channels a category does not support are ignored. ``transactional.push``
    is forced back to true on every write.
    """
    if _is_blank(user_id):
        raise ValidationException("Invalid userId")

    prefs = get_or_create_preferences(db, user_id)
    if prefs is None:
        raise RuntimeError(f"Could not load notification preferences for {user_id}")

    updated = []
    for key, flags in changes.items():
        try:
            category = Category(key)
        except ValueError:
            raise ValidationException(f"Unknown notification category: {key}")
        allowed_channels = {c.value for c in CATEGORY_CHANNELS[category]}
        current = _stored_flags(prefs, category) or DEFAULT_PREFERENCES[category.value]
        merged = dict(current)
        merged.update({k: bool(v) for k, v in (flags or {}).items() if k in allowed_channels and v is not None})
        # Assign a fresh dict so the JSON column is flagged dirty
        setattr(prefs, _CATEGORY_ATTRS[category], merged)
        updated.append(category.value)

    transactional = dict(_stored_flags(prefs, Category.transactional) or DEFAULT_PREFERENCES[Category.transactional.value])
    transactional["push"] = True
    prefs.transactional = transactional

    db.commit()
    db.refresh(prefs)

    logger.info(f"Updated notification preferences for user: {user_id}")
    audit.log_preferences_updated(user_id, updated)
    return serialize_preferences(prefs)
