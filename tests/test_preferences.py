"""Tests for notification preferences and the send gate."""

import pytest

from app.exceptions import ValidationException
from app.models.notification_preferences import NotificationPreferences
from app.services import preferences
from app.services.preferences import (
    DEFAULT_PREFERENCES,
    Category,
    Channel,
    PreferenceGate,
    get_or_create_preferences,
    get_preferences,
    update_preferences,
)


def _count(db, user_id):
    return db.query(NotificationPreferences).filter(NotificationPreferences.user_id == user_id).count()


class TestLazyCreation:

    def test_first_check_creates_defaults(self, db_session, user_id):
        assert PreferenceGate(db_session).allowed(user_id, "taskUpdates", "push") is True
        assert _count(db_session, user_id) == 1
        assert get_preferences(db_session, user_id) == DEFAULT_PREFERENCES

    def test_repeated_checks_do_not_duplicate(self, db_session, user_id):
        gate = PreferenceGate(db_session)
        gate.allowed(user_id, "taskUpdates", "push")
        gate.allowed(user_id, "taskReminders", "email")
        get_preferences(db_session, user_id)
        assert _count(db_session, user_id) == 1

    def test_racing_creators_converge_on_one_row(self, session_factory, user_id):
        """Both sessions miss the row, both insert; the second insert is a no-op."""
        first, second = session_factory(), session_factory()
        try:
            assert first.query(NotificationPreferences).filter_by(user_id=user_id).first() is None
            assert second.query(NotificationPreferences).filter_by(user_id=user_id).first() is None

            preferences._insert_defaults(first, user_id)
            preferences._insert_defaults(second, user_id)

            a = get_or_create_preferences(first, user_id)
            b = get_or_create_preferences(second, user_id)
            assert a.id == b.id
            assert _count(first, user_id) == 1
        finally:
            first.close()
            second.close()

    def test_blank_user_id_gets_defaults_without_a_row(self, db_session):
        assert get_preferences(db_session, "  ") == DEFAULT_PREFERENCES
        assert db_session.query(NotificationPreferences).count() == 0


class TestPreferenceGate:

    def test_blank_user_is_denied(self, db_session):
        gate = PreferenceGate(db_session)
        assert gate.allowed("", "taskUpdates", "push") is False
        assert gate.allowed("   ", "transactional", "push") is False
        assert gate.allowed(None, "taskUpdates", "push") is False
        assert db_session.query(NotificationPreferences).count() == 0

    def test_push_only_categories_never_allow_other_channels(self, db_session, user_id):
        gate = PreferenceGate(db_session)
        for category in ("keywordTaskAlerts", "recommendedTaskAlerts"):
            assert gate.allowed(user_id, category, "email") is False
            assert gate.allowed(user_id, category, "sms") is False
            assert gate.allowed(user_id, category, "push") is True

    def test_push_only_category_follows_stored_flag(self, db_session, user_id):
        update_preferences(db_session, user_id, {"keywordTaskAlerts": {"push": False}})
        gate = PreferenceGate(db_session)
        assert gate.allowed(user_id, Category.keyword_task_alerts, Channel.push) is False
        assert gate.allowed(user_id, "recommendedTaskAlerts", "push") is True

    def test_channel_flag_is_returned_for_multi_channel_category(self, db_session, user_id):
        update_preferences(db_session, user_id, {"taskReminders": {"sms": False}})
        gate = PreferenceGate(db_session)
        assert gate.allowed(user_id, "taskReminders", "sms") is False
        assert gate.allowed(user_id, "taskReminders", "email") is True
        assert gate.allowed(user_id, "transactional", "email") is False

    def test_unknown_category_is_allowed(self, db_session, user_id):
        assert PreferenceGate(db_session).allowed(user_id, "brandNewCategory", "push") is True

    def test_category_missing_from_row_is_allowed(self, db_session, user_id):
        prefs = get_or_create_preferences(db_session, user_id)
        prefs.helpful_information = None
        db_session.commit()
        assert PreferenceGate(db_session).allowed(user_id, "helpfulInformation", "push") is True

    def test_incomplete_channel_set_is_denied(self, db_session, user_id):
        prefs = get_or_create_preferences(db_session, user_id)
        prefs.task_updates = {"push": True}
        db_session.commit()
        assert PreferenceGate(db_session).allowed(user_id, "taskUpdates", "push") is False

    @pytest.mark.parametrize("attr, category", [
        ("task_updates", "taskUpdates"),
        ("keyword_task_alerts", "keywordTaskAlerts"),
    ])
    def test_empty_stored_category_is_denied(self, db_session, user_id, attr, category):
        prefs = get_or_create_preferences(db_session, user_id)
        setattr(prefs, attr, {})
        db_session.commit()
        assert PreferenceGate(db_session).allowed(user_id, category, "push") is False
        assert get_preferences(db_session, user_id)[category] == {}

    def test_unknown_channel_is_denied(self, db_session, user_id):
        gate = PreferenceGate(db_session)
        assert gate.allowed(user_id, "taskUpdates", "fax") is False
        assert gate.allowed(user_id, "keywordTaskAlerts", "pager") is False

    def test_store_error_fails_open(self, db_session, user_id, monkeypatch):
        def boom(db, uid):
            raise RuntimeError("database unavailable")
        monkeypatch.setattr(preferences, "get_or_create_preferences", boom)
        assert PreferenceGate(db_session).allowed(user_id, "taskUpdates", "push") is True

    def test_missing_record_fails_open(self, db_session, user_id, monkeypatch):
        monkeypatch.setattr(preferences, "get_or_create_preferences", lambda db, uid: None)
        assert PreferenceGate(db_session).allowed(user_id, "taskUpdates", "push") is True


class TestUpdatePreferences:

    def test_partial_update_round_trip(self, db_session, user_id):
        before = get_preferences(db_session, user_id)
        update_preferences(db_session, user_id, {"taskUpdates": {"email": False}})
        after = get_preferences(db_session, user_id)

        assert after["taskUpdates"]["email"] is False
        assert after["taskUpdates"]["push"] == before["taskUpdates"]["push"]
        assert after["taskUpdates"]["sms"] == before["taskUpdates"]["sms"]
        assert after["taskReminders"] == before["taskReminders"]

    @pytest.mark.parametrize("changes", [
        {"transactional": {"push": False}},
        {"transactional": {"push": False, "email": True}},
        {"taskUpdates": {"push": False}},
        {},
    ])
    def test_transactional_push_is_always_true(self, db_session, user_id, changes):
        result = update_preferences(db_session, user_id, changes)
        assert result["transactional"]["push"] is True
        assert get_preferences(db_session, user_id)["transactional"]["push"] is True

    def test_transactional_other_channels_can_change(self, db_session, user_id):
        result = update_preferences(db_session, user_id, {"transactional": {"email": True, "sms": False}})
        assert result["transactional"] == {"email": True, "push": True, "sms": False}

    def test_unsupported_channel_is_ignored(self, db_session, user_id):
        result = update_preferences(db_session, user_id, {"keywordTaskAlerts": {"push": False, "email": True}})
        assert result["keywordTaskAlerts"] == {"push": False}

    def test_unknown_category_rejected(self, db_session, user_id):
        with pytest.raises(ValidationException):
            update_preferences(db_session, user_id, {"marketingBlasts": {"push": False}})

    def test_blank_user_rejected(self, db_session):
        with pytest.raises(ValidationException):
            update_preferences(db_session, "", {"taskUpdates": {"email": False}})
