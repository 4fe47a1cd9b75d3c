# parentline/infra/automation_client.py
"""
Client for the external automation webhooks (workflow tool).

Two request-style calls, no streaming:
- ``fetch_status()``: GET the status webhook, expect a JSON object
  with a human-readable ``message`` field.
- ``run_analysis()``: POST a JSON payload to the analysis webhook and
  wait for the finished report.

Errors are typed so the HTTP layer can map each one to a JSON error body.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import aiohttp

from parentline.config import settings
from parentline.infra.http_client import get_webhook_session
from parentline.infra.logging_config import get_logger
from parentline.infra.metrics import inc_counter

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------

class AutomationError(Exception):
    """Base error for automation webhook calls.

    Attributes:
        detail: Human-readable explanation.
        raw:    Raw upstream body, when one was received.
        status: Upstream HTTP status (0 when no response).
    """

    def __init__(self, detail: str, *, raw: str | None = None, status: int = 0):
        self.detail = detail
        self.raw = raw
        self.status = status
        super().__init__(detail)


class AutomationNotConfigured(AutomationError):
    """Webhook URL is not set."""


class AutomationBadResponse(AutomationError):
    """Upstream answered, but with a non-success status or non-JSON body."""


class AutomationUnavailable(AutomationError):
    """Upstream could not be reached (connection error, timeout)."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class AutomationClient:
    def __init__(
        self,
        status_url: str | None,
        analysis_url: str | None,
        session_factory: Callable[[], aiohttp.ClientSession] = get_webhook_session,
    ) -> None:
        self._status_url = status_url
        self._analysis_url = analysis_url
        self._session_factory = session_factory

    @classmethod
    def from_settings(cls) -> "AutomationClient":
        return cls(
            status_url=settings.status_webhook_url,
            analysis_url=settings.analysis_webhook_url,
        )

    async def fetch_status(self) -> Any:
        """GET the status webhook and return its parsed JSON."""
        if not self._status_url:
            logger.error("Status webhook URL is not configured")
            raise AutomationNotConfigured("Webhook URL missing.")

        logger.info("Calling status webhook")
        status, text = await self._request("status", "GET", self._status_url)
        logger.debug(f"Status webhook answered: status={status}, bytes={len(text)}")

        try:
            result = json.loads(text)
        except ValueError:
            logger.warning("Status webhook response is not JSON")
            inc_counter("automation_calls_total", webhook="status", outcome="invalid_json")
            raise AutomationBadResponse("Invalid JSON from automation", raw=text, status=status)

        inc_counter("automation_calls_total", webhook="status", outcome="ok")
        return result

    async def run_analysis(self, payload: Any) -> Any:
        """POST ``payload`` to the analysis webhook; blocks until the report is ready."""
        if not self._analysis_url:
            logger.error("Analysis webhook URL is not configured")
            raise AutomationNotConfigured("Webhook not configured")

        logger.info("Triggering analysis webhook")
        status, text = await self._request("analysis", "POST", self._analysis_url, json_body=payload)

        if status < 200 or status >= 300:
            logger.warning(f"Analysis webhook returned HTTP {status}")
            inc_counter("automation_calls_total", webhook="analysis", outcome="http_error")
            raise AutomationBadResponse("Automation error", raw=text, status=status)

        try:
            result = json.loads(text)
        except ValueError:
            logger.warning("Analysis webhook response is not JSON")
            inc_counter("automation_calls_total", webhook="analysis", outcome="invalid_json")
            raise AutomationBadResponse("Invalid JSON from automation", raw=text, status=status)

        inc_counter("automation_calls_total", webhook="analysis", outcome="ok")
        return result

    async def _request(self, webhook: str, method: str, url: str, *, json_body: Any = None) -> tuple[int, str]:
        session = self._session_factory()
        try:
            async with session.request(method, url, json=json_body) as resp:
                text = await resp.text()
                return resp.status, text
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error(f"Automation webhook unreachable: {exc.__class__.__name__}: {exc}")
            inc_counter("automation_calls_total", webhook=webhook, outcome="unreachable")
            raise AutomationUnavailable(str(exc) or exc.__class__.__name__) from exc
