"""Karbon mirror configuration via pydantic-settings."""

from __future__ import annotations


from pydantic_settings import BaseSettings


class KarbonSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///karbon.db"
    echo_sql: bool = False
    app_title: str = "Karbon Mirror"
    auto_create_tables: bool = True

    # Source API credentials (both headers are required on every call)
    access_key: str | None = None
    bearer_token: str | None = None
    api_base_url: str = "https://api.karbonhq.com/v3"
    request_timeout_seconds: float = 30.0

    # Deep links into the Karbon web app
    app_base_url: str = "https://app2.karbonhq.com"
    app_tenant: str = "4mTyp9lLRWTC"

    # Inbound webhooks; an empty secret disables signature checks (dev only)
    webhook_secret: str | None = None
    webhook_followups_enabled: bool = True
    followup_max_attempts: int = 3

    sync_max_pages: int = 50
    sync_batch_size: int = 50
    sync_run_lease_seconds: int = 7200
    sync_stale_after_hours: int = 24
    # Only overwrite rows whose stored karbon_modified_at is not newer.
    sync_stale_guard: bool = True

    model_config = {"env_prefix": "KARBON_", "env_file": ".env", "extra": "ignore"}

    @property
    def credentials_configured(self) -> bool:
        return bool(self.access_key and self.bearer_token)

    @property
    def webhook_verification_enabled(self) -> bool:
        return bool(self.webhook_secret)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    def config_errors(self) -> list[str]:
        """Settings that make the engine unusable regardless of credentials."""
        errors: list[str] = []
        if self.sync_batch_size < 1:
            errors.append("KARBON_SYNC_BATCH_SIZE must be at least 1")
        if self.sync_max_pages < 1:
            errors.append("KARBON_SYNC_MAX_PAGES must be at least 1")
        if self.request_timeout_seconds <= 0:
            errors.append("KARBON_REQUEST_TIMEOUT_SECONDS must be positive")
        if self.sync_run_lease_seconds < 1:
            errors.append("KARBON_SYNC_RUN_LEASE_SECONDS must be at least 1")
        if not self.api_base_url.startswith(("https://", "http://")):
            errors.append("KARBON_API_BASE_URL must be an http(s) URL")
        return errors

    def config_warnings(self) -> list[str]:
        warnings: list[str] = []
        if not self.credentials_configured:
            warnings.append(
                "KARBON_ACCESS_KEY / KARBON_BEARER_TOKEN not set; sync and webhook fetches will fail"
            )
        if not self.webhook_secret:
            warnings.append(
                "KARBON_WEBHOOK_SECRET not set; webhook signatures will not be verified"
            )
        if self.is_production and not self.api_base_url.startswith("https://"):
            warnings.append("KARBON_API_BASE_URL is not https in production")
        return warnings


settings = KarbonSettings()
