# parentline/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    port: int = 3000

    # Security
    allowed_origins: list[str] = ["*"]

    # Twilio (WhatsApp message channel)
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_whatsapp_from: str | None = None  # e.g. "whatsapp:+14155238886" or "+14155238886"

    # Google Sheets (recipient source)
    google_sheet_id: str | None = None
    google_credentials_file: str = "credentials.json"  # Used when the file exists
    google_service_account_email: str | None = None  # Fallback when no credentials file
    google_private_key: str | None = None  # Literal "\n" sequences are unescaped

    # Dataset ranges (A1 notation, header row excluded)
    daily_report_range: str = "Daily Report!A2:H"
    weekly_menu_range: str = "WeeklyMenu!A2:C"

    # Automation webhooks (status + analysis proxies)
    status_webhook_url: str | None = None
    analysis_webhook_url: str | None = None
    webhook_timeout_seconds: int = 120  # Analysis jobs can be slow

    # Progress streaming
    event_queue_size: int = 100  # Bounded buffer between runner and SSE responder
    sse_heartbeat_seconds: float = 15.0

    # Monitoring
    enable_metrics: bool = True

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def twilio_enabled(self) -> bool:
        """Check if the Twilio channel is configured"""
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_whatsapp_from
        )

    @property
    def google_private_key_pem(self) -> str | None:
        """Private key with escaped newlines restored (env vars can't hold raw newlines)"""
        if not self.google_private_key:
            return None
        return self.google_private_key.replace("\\n", "\n")

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        required_fields = [
            ("twilio_account_sid", self.twilio_account_sid),
            ("twilio_auth_token", self.twilio_auth_token),
            ("twilio_whatsapp_from", self.twilio_whatsapp_from),
            ("google_sheet_id", self.google_sheet_id),
        ]

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    # --- Message channel ---
    if not s.twilio_account_sid:
        warnings.append("twilio_account_sid is missing (sends will fail).")
    if not s.twilio_auth_token:
        warnings.append("twilio_auth_token is missing (sends will fail).")
    if not s.twilio_whatsapp_from:
        warnings.append("twilio_whatsapp_from is missing (sends will fail).")

    # --- Recipient source ---
    if not s.google_sheet_id:
        warnings.append("google_sheet_id is missing (dataset reads will fail).")
    has_key_file = Path(s.google_credentials_file).is_file()
    if not has_key_file and (not s.google_service_account_email or not s.google_private_key):
        warnings.append(
            "google_service_account_email/google_private_key not set: "
            "a credentials file is required for sheet access."
        )

    # --- Automation webhooks ---
    if not s.status_webhook_url:
        warnings.append("status_webhook_url is not set (/student-status will return 500).")
    if not s.analysis_webhook_url:
        warnings.append("analysis_webhook_url is not set (/api/teacher-analysis-report will return 500).")

    return warnings


settings = Settings()
