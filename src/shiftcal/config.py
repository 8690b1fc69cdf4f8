"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables with SHIFTCAL_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="SHIFTCAL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Core ---
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///shiftcal.db"
    echo_sql: bool = False
    sqlite_busy_timeout_ms: int = 30_000
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3123"]
    log_level: str = "INFO"
    log_format: str = "json"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3123

    # --- Session ---
    session_secret: str = ""
    session_cookie_name: str = "auth"
    session_ttl_days: int = 7
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "shiftcal"

    # --- Registration / rate limits ---
    password_min_length: int = 8
    otc_ttl_seconds: int = 600
    rate_limit_max_attempts: int = 5
    rate_limit_window_seconds: int = 900
    housekeeping_interval_seconds: int = 60

    # --- Google Calendar overlay ---
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = ""
    google_http_timeout_seconds: float = 15.0
    google_events_max_span_days: int = 90
    google_events_page_size: int = 250
    oauth_state_ttl_seconds: int = 600

    # --- Email service ---
    email_provider: str = "log"
    email_from_address: str = "noreply@shiftcal.local"
    email_from_name: str = "ShiftCal"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    resend_api_key: str = ""
    app_base_url: str = "http://localhost:3123"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    @property
    def google_configured(self) -> bool:
        return bool(self.google_client_id and self.google_redirect_uri)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
