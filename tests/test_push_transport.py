"""Tests for the FCM transport adapter."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from firebase_admin import exceptions as fb_exceptions
from firebase_admin import messaging

from app.exceptions import PushTransportError
from app.services.push_transport import (
    MISMATCHED_CREDENTIAL,
    TOKEN_INVALID,
    TOKEN_NOT_REGISTERED,
    UNKNOWN_ERROR,
    FcmTransport,
    PushMessage,
    _convert_data_to_strings,
    classify_error,
    is_token_invalid,
)

MESSAGE = PushMessage(title="Hi", body="There", data={"type": "ping"})


class TestClassifyError:

    def test_unregistered(self):
        assert classify_error(messaging.UnregisteredError("gone")) == TOKEN_NOT_REGISTERED

    def test_invalid_argument(self):
        assert classify_error(fb_exceptions.InvalidArgumentError("bad token")) == TOKEN_INVALID

    def test_sender_mismatch(self):
        assert classify_error(messaging.SenderIdMismatchError("wrong sender")) == MISMATCHED_CREDENTIAL

    def test_other_firebase_error_uses_its_code(self):
        assert classify_error(fb_exceptions.UnavailableError("try later")) == "unavailable"

    def test_missing_exception(self):
        assert classify_error(None) == UNKNOWN_ERROR

    def test_only_dead_token_codes_are_invalid(self):
        assert is_token_invalid(TOKEN_NOT_REGISTERED)
        assert is_token_invalid(TOKEN_INVALID)
        assert not is_token_invalid(MISMATCHED_CREDENTIAL)
        assert not is_token_invalid("unavailable")
        assert not is_token_invalid(None)


def test_data_values_become_strings():
    assert _convert_data_to_strings({"n": 1, "flag": False, "none": None}) == {
        "n": "1", "flag": "False", "none": ""
    }
    assert _convert_data_to_strings(None) == {}


class TestFcmTransport:

    def test_unconfigured_transport_raises(self):
        with patch("app.services.push_transport._is_fcm_available", return_value=False):
            with pytest.raises(PushTransportError):
                FcmTransport().send_multicast(["tok-1"], MESSAGE)

    def test_empty_token_list_sends_nothing(self):
        with patch("firebase_admin.messaging.send_each_for_multicast") as send:
            assert FcmTransport().send_multicast([], MESSAGE) == []
        send.assert_not_called()

    def test_outcomes_follow_token_order(self):
        response = SimpleNamespace(
            success_count=1,
            failure_count=1,
            responses=[
                SimpleNamespace(success=True, message_id="m-1", exception=None),
                SimpleNamespace(success=False, message_id=None, exception=messaging.UnregisteredError("gone")),
            ],
        )
        with patch("app.services.push_transport._is_fcm_available", return_value=True), \
                patch("firebase_admin.messaging.send_each_for_multicast", return_value=response) as send:
            outcomes = FcmTransport().send_multicast(["tok-1", "tok-2"], MESSAGE)

        send.assert_called_once()
        sent = send.call_args.args[0]
        assert sent.tokens == ["tok-1", "tok-2"]
        assert sent.data == {"type": "ping"}
        assert [(o.token, o.success, o.error_code) for o in outcomes] == [
            ("tok-1", True, None),
            ("tok-2", False, TOKEN_NOT_REGISTERED),
        ]
        assert outcomes[0].message_id == "m-1"

    def test_firebase_failure_becomes_transport_error(self):
        with patch("app.services.push_transport._is_fcm_available", return_value=True), \
                patch(
                    "firebase_admin.messaging.send_each_for_multicast",
                    side_effect=fb_exceptions.UnavailableError("FCM down"),
                ):
            with pytest.raises(PushTransportError):
                FcmTransport().send_multicast(["tok-1"], MESSAGE)
