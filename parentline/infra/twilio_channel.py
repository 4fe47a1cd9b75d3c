# parentline/infra/twilio_channel.py
"""
WhatsApp message channel via Twilio.

One ``send`` = one ``client.messages.create`` call. No queue, no retry:
the dispatch runner reports every failure once and moves on.

Failure classification (informational, never drives retries):
- 21211 / 21614 / 63003 / 63024 → invalid_destination
- 20003 / HTTP 401 / 403         → auth
- 20429 / 63038 / HTTP 429       → rate_limited
- HTTP 5xx / network errors      → transient
- anything else                  → unknown

The Twilio SDK is synchronous; calls run in the default executor so the
event loop keeps streaming other jobs' progress.
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from parentline.config import settings
from parentline.core.dispatch.domain import DispatchOutcome, Failed, FailureKind, Sent
from parentline.infra.logging_config import get_logger, mask_destination

logger = get_logger(__name__)

_INVALID_DESTINATION_CODES = {21211, 21614, 63003, 63024}
_AUTH_CODES = {20003}
_RATE_LIMIT_CODES = {20429, 63038}


def whatsapp_address(number: str) -> str:
    """Twilio expects ``whatsapp:+972501234567``."""
    clean = number.replace("whatsapp:", "").strip()
    return f"whatsapp:{clean}"


def classify_twilio_error(code: int | None, status: int | None) -> FailureKind:
    """Map a Twilio error code / HTTP status to a ``FailureKind``."""
    if code in _INVALID_DESTINATION_CODES:
        return FailureKind.INVALID_DESTINATION
    if code in _RATE_LIMIT_CODES or status == 429:
        return FailureKind.RATE_LIMITED
    if code in _AUTH_CODES or status in (401, 403):
        return FailureKind.AUTH
    if status is not None and status >= 500:
        return FailureKind.TRANSIENT
    return FailureKind.UNKNOWN


class TwilioWhatsAppChannel:
    """``MessageChannel`` backed by the Twilio Messages API."""

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        client: Any = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._client = client

    @classmethod
    def from_settings(cls) -> "TwilioWhatsAppChannel":
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_from,
        )

    @property
    def name(self) -> str:
        return "twilio_whatsapp"

    def is_configured(self) -> bool:
        if self._client is not None:
            return bool(self._from_number)
        return bool(self._account_sid and self._auth_token and self._from_number)

    def _get_client(self) -> Any:
        """Get or create Twilio client."""
        if self._client is None:
            self._client = Client(self._account_sid, self._auth_token)
        return self._client

    async def send(self, destination: str, body: str) -> DispatchOutcome:
        if not self.is_configured():
            logger.error("Twilio channel not configured")
            return Failed(destination, "Twilio credentials not configured", FailureKind.AUTH)

        client = self._get_client()
        create = functools.partial(
            client.messages.create,
            from_=whatsapp_address(self._from_number),
            to=whatsapp_address(destination),
            body=body,
        )

        loop = asyncio.get_running_loop()
        try:
            message = await loop.run_in_executor(None, create)
        except TwilioRestException as exc:
            kind = classify_twilio_error(exc.code, exc.status)
            reason = exc.msg or str(exc)
            logger.warning(
                f"Twilio send failed: code={exc.code}, status={exc.status}, kind={kind.value}",
                extra={"destination": destination},
            )
            return Failed(destination, reason, kind)
        except Exception as exc:
            # Connection resets, DNS failures, timeouts from the HTTP client.
            logger.warning(
                f"Twilio transport error: {exc.__class__.__name__}: {exc}",
                extra={"destination": destination},
            )
            return Failed(destination, str(exc) or exc.__class__.__name__, FailureKind.TRANSIENT)

        sid = getattr(message, "sid", None)
        logger.info(
            f"Twilio message sent: sid={(sid or '')[:8]}***, to={mask_destination(destination)}",
            extra={"message_sid": sid},
        )
        return Sent(destination, message_id=sid)
