# tests/test_twilio_channel.py
"""Tests for parentline/infra/twilio_channel.py: WhatsApp sends via Twilio."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from twilio.base.exceptions import TwilioRestException

from parentline.core.dispatch import Failed, FailureKind, Sent
from parentline.infra.twilio_channel import (
    TwilioWhatsAppChannel,
    classify_twilio_error,
    whatsapp_address,
)


def _client(sid="SM1234567890abcdef"):
    client = MagicMock()
    client.messages.create.return_value = MagicMock(sid=sid)
    return client


def _rest_error(status, code, msg="Twilio error"):
    return TwilioRestException(
        status=status,
        uri="/2010-04-01/Accounts/AC123/Messages.json",
        msg=msg,
        code=code,
        method="POST",
    )


# ============================================================================
# Helpers
# ============================================================================

class TestWhatsappAddress:
    def test_adds_prefix(self):
        assert whatsapp_address("+972501234567") == "whatsapp:+972501234567"

    def test_keeps_single_prefix(self):
        assert whatsapp_address("whatsapp:+14155238886") == "whatsapp:+14155238886"


class TestClassifyTwilioError:
    @pytest.mark.parametrize("code,status,expected", [
        (21211, 400, FailureKind.INVALID_DESTINATION),
        (63003, 400, FailureKind.INVALID_DESTINATION),
        (20429, 429, FailureKind.RATE_LIMITED),
        (None, 429, FailureKind.RATE_LIMITED),
        (20003, 401, FailureKind.AUTH),
        (None, 403, FailureKind.AUTH),
        (None, 503, FailureKind.TRANSIENT),
        (12345, 400, FailureKind.UNKNOWN),
        (None, None, FailureKind.UNKNOWN),
    ])
    def test_mapping(self, code, status, expected):
        assert classify_twilio_error(code, status) is expected


# ============================================================================
# TwilioWhatsAppChannel.send
# ============================================================================

class TestTwilioWhatsAppChannel:
    @pytest.mark.asyncio
    async def test_send_success(self):
        client = _client()
        channel = TwilioWhatsAppChannel("AC123", "token", "+14155238886", client=client)

        outcome = await channel.send("+972501234567", "Hello parent")

        assert outcome == Sent("+972501234567", message_id="SM1234567890abcdef")
        client.messages.create.assert_called_once_with(
            from_="whatsapp:+14155238886",
            to="whatsapp:+972501234567",
            body="Hello parent",
        )

    @pytest.mark.asyncio
    async def test_rest_error_is_reported_with_reason(self):
        client = _client()
        client.messages.create.side_effect = _rest_error(
            400, 21211, "The 'To' number +1 is not a valid phone number."
        )
        channel = TwilioWhatsAppChannel("AC123", "token", "+14155238886", client=client)

        outcome = await channel.send("+1", "Hello")

        assert isinstance(outcome, Failed)
        assert outcome.reason == "The 'To' number +1 is not a valid phone number."
        assert outcome.kind is FailureKind.INVALID_DESTINATION

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        client = _client()
        client.messages.create.side_effect = ConnectionError("Connection reset by peer")
        channel = TwilioWhatsAppChannel("AC123", "token", "+14155238886", client=client)

        outcome = await channel.send("+972501234567", "Hello")

        assert outcome == Failed("+972501234567", "Connection reset by peer", FailureKind.TRANSIENT)

    @pytest.mark.asyncio
    async def test_not_configured(self):
        channel = TwilioWhatsAppChannel(None, None, None)

        outcome = await channel.send("+972501234567", "Hello")

        assert isinstance(outcome, Failed)
        assert outcome.kind is FailureKind.AUTH

    def test_client_created_lazily(self):
        channel = TwilioWhatsAppChannel("AC123", "token", "+14155238886")

        with patch("parentline.infra.twilio_channel.Client") as client_cls:
            first = channel._get_client()
            second = channel._get_client()

        client_cls.assert_called_once_with("AC123", "token")
        assert first is second

    def test_from_settings(self):
        with patch("parentline.infra.twilio_channel.settings") as mock_settings:
            mock_settings.twilio_account_sid = "AC999"
            mock_settings.twilio_auth_token = "secret"
            mock_settings.twilio_whatsapp_from = "whatsapp:+14155238886"

            channel = TwilioWhatsAppChannel.from_settings()

        assert channel.is_configured()
        assert channel.name == "twilio_whatsapp"
