"""Tests for multi-user push sends."""

import threading
from unittest.mock import patch

import pytest

from app.exceptions import DispatchError, ValidationException
from app.schemas.notification import NotificationPayload
from app.services.batch import BatchCoordinator
from app.services.push_notification import DispatchResult, PushNotificationService
from app.services.push_transport import TOKEN_NOT_REGISTERED


PAYLOAD = NotificationPayload(type="task_assigned", title="New task", body="Open the app")


class TestSendToMany:

    def test_one_failing_user_does_not_stop_others(self, session_factory, fake_transport):
        def fake_send(self, user_id, payload):
            if user_id == "b":
                raise DispatchError(user_id, "boom")
            return DispatchResult(attempted=1, sent=1, failed=0)

        with patch.object(PushNotificationService, "send_to_user", fake_send):
            result = BatchCoordinator(session_factory, fake_transport, max_workers=3).send_to_many(
                ["a", "b", "c"], PAYLOAD
            )

        assert result.to_dict() == {"total": 3, "sent": 2, "failed": 1}

    def test_concurrency_is_bounded(self, session_factory, fake_transport):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}
        release = threading.Event()

        def fake_send(self, user_id, payload):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            release.wait(0.05)
            with lock:
                state["active"] -= 1
            return DispatchResult(attempted=1, sent=1, failed=0)

        users = [f"user-{i}" for i in range(10)]
        with patch.object(PushNotificationService, "send_to_user", fake_send):
            result = BatchCoordinator(session_factory, fake_transport, max_workers=2).send_to_many(users, PAYLOAD)

        assert result.total == 10
        assert result.sent == 10
        assert state["peak"] <= 2

    def test_empty_user_list(self, session_factory, fake_transport):
        result = BatchCoordinator(session_factory, fake_transport).send_to_many([], PAYLOAD)
        assert result.to_dict() == {"total": 0, "sent": 0, "failed": 0}
        assert fake_transport.calls == []

    def test_counts_per_token_outcomes(self, session_factory, fake_transport, add_token):
        add_token("a", "tok-a1")
        add_token("a", "tok-a2")
        add_token("b", "tok-b1")
        fake_transport.failures = {"tok-a2": TOKEN_NOT_REGISTERED}

        result = BatchCoordinator(session_factory, fake_transport, max_workers=1).send_to_many(
            ["a", "b", "nobody"], PAYLOAD
        )

        assert result.to_dict() == {"total": 3, "sent": 2, "failed": 1}
        assert len(fake_transport.calls) == 2


class TestSend:

    def test_sums_over_targets(self, session_factory, fake_transport, add_token):
        add_token("a", "tok-a")
        add_token("b", "tok-b")

        summary = BatchCoordinator(session_factory, fake_transport).send(["a", "b"], PAYLOAD)

        assert summary.sent == 2
        assert summary.failed == 0
        assert summary.success is True

    def test_nothing_delivered_is_not_success(self, session_factory, fake_transport):
        summary = BatchCoordinator(session_factory, fake_transport).send(["a"], PAYLOAD)
        assert summary.sent == 0
        assert summary.success is False

    @pytest.mark.parametrize("targets", [[], None, ["", "  "]])
    def test_requires_a_target(self, session_factory, fake_transport, targets):
        with pytest.raises(ValidationException):
            BatchCoordinator(session_factory, fake_transport).send(targets, PAYLOAD)

    def test_requires_content(self, session_factory, fake_transport):
        payload = NotificationPayload(type="task_assigned", title=" ", body="Open the app")
        with pytest.raises(ValidationException):
            BatchCoordinator(session_factory, fake_transport).send(["a"], payload)
