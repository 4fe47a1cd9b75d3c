# parentline/infra/sheets_source.py
"""
Recipient source backed by the Google Sheets values API.

Credentials, in priority order:
  1) service-account key file (``google_credentials_file``) when it exists
  2) ``google_service_account_email`` + ``google_private_key`` from env

Missing credentials are not fatal at startup; the first fetch raises
``RecipientSourceError`` and the job reports it as a job-level error.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from parentline.config import settings
from parentline.core.dispatch.domain import DatasetSpec, RecipientRecord
from parentline.core.dispatch.errors import RecipientSourceError
from parentline.infra.logging_config import get_logger

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def load_credentials(
    credentials_file: str | None,
    email: str | None,
    private_key: str | None,
) -> service_account.Credentials:
    """Build service-account credentials from a key file or env values."""
    if credentials_file and Path(credentials_file).is_file():
        logger.info(f"Using {credentials_file} for Google auth")
        return service_account.Credentials.from_service_account_file(
            credentials_file, scopes=SCOPES
        )

    logger.info("Google credentials file not found, using env variables")
    if not email or not private_key:
        logger.error("Missing Google auth env variables (service account email / private key)")
        raise RecipientSourceError(
            "Google credentials not configured. Provide a credentials file or "
            "GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY."
        )

    info = {
        "type": "service_account",
        "client_email": email,
        "private_key": private_key,
        "token_uri": TOKEN_URI,
    }
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except ValueError as exc:
        raise RecipientSourceError(f"Invalid Google service account key: {exc}") from exc


def _describe_http_error(exc: HttpError) -> str:
    status = getattr(exc.resp, "status", "unknown")
    try:
        body = exc.content.decode("utf-8", errors="ignore")
    except Exception:
        body = str(exc)
    return f"Google Sheets API error (HTTP {status}): {body.strip()[:300]}"


class GoogleSheetsRecipientSource:
    """``RecipientSource`` that reads one A1 range per dataset."""

    def __init__(
        self,
        spreadsheet_id: str | None,
        credentials_factory: Callable[[], service_account.Credentials],
        service_factory: Callable[[service_account.Credentials], object] | None = None,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._credentials_factory = credentials_factory
        self._service_factory = service_factory or self._build_service
        self._credentials: service_account.Credentials | None = None

    @classmethod
    def from_settings(cls) -> "GoogleSheetsRecipientSource":
        return cls(
            spreadsheet_id=settings.google_sheet_id,
            credentials_factory=lambda: load_credentials(
                settings.google_credentials_file,
                settings.google_service_account_email,
                settings.google_private_key_pem,
            ),
        )

    @staticmethod
    def _build_service(credentials: service_account.Credentials):
        return build("sheets", "v4", credentials=credentials, cache_discovery=False)

    def _get_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            self._credentials = self._credentials_factory()
        return self._credentials

    def _read_range(self, sheet_range: str) -> list[list[str]]:
        # httplib2 transports are not thread-safe: one service per read.
        service = self._service_factory(self._get_credentials())
        resp = service.spreadsheets().values().get(
            spreadsheetId=self._spreadsheet_id,
            range=sheet_range,
        ).execute()
        return resp.get("values", [])

    async def fetch(self, dataset: DatasetSpec) -> Sequence[RecipientRecord]:
        if not self._spreadsheet_id:
            raise RecipientSourceError("Spreadsheet ID not configured (GOOGLE_SHEET_ID)")

        loop = asyncio.get_running_loop()
        try:
            rows = await loop.run_in_executor(None, self._read_range, dataset.sheet_range)
        except HttpError as exc:
            raise RecipientSourceError(_describe_http_error(exc)) from exc

        logger.info(
            f"Sheet range read: range={dataset.sheet_range!r}, rows={len(rows)}",
            extra={"dataset": dataset.name},
        )
        return [RecipientRecord.from_row(row) for row in rows]
