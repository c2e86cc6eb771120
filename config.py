"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Decision on the signing secret env var: JWT_SECRET is the canonical name, but
SECRET_KEY is also accepted as a fallback (handled in AppSettings via
model_validator) so a single-secret deployment needs only one variable.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "auth-service"
    # Upper bound for every store call; surfaced to callers as a 500
    mongodb_timeout_ms: int = 5000


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "auth-service"
    jwt_audience: str = "auth-service.api"
    access_token_ttl_seconds: int = 86400

    # RS256 keys (optional)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 shared secret (used when RS256 keys are absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)

    @property
    def algorithm(self) -> str:
        return "RS256" if self.use_rs256 else "HS256"


class SessionSettings(BaseSettings):
    """Refresh-token lifetimes and the cookie that carries them."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    refresh_token_ttl_seconds: int = 2592000  # 30 days
    login_session_ttl_seconds: int = 604800  # 7 days, also the cookie max-age
    revoked_retention_days: int = 7

    # False allows several concurrent devices per user
    single_session: bool = False

    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str = "/auth"
    cookie_secure: bool = True
    cookie_samesite: str = "strict"


class OTPSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = 6
    otp_expiry_minutes: int = 10
    otp_max_attempts: int = 3
    otp_used_retention_hours: int = 24


class PasswordResetSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    reset_token_expiry_minutes: int = 15
    reset_token_retention_hours: int = 24
    # Frontend page that receives ?token=...; defaults to {app_url}/reset-password
    reset_password_url: str = ""


class HashingSettings(BaseSettings):
    """argon2id cost parameters."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    hash_time_cost: int = 3
    hash_memory_cost: int = 65536
    hash_parallelism: int = 4
    password_min_length: int = 6


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Auth Service"
    email_timeout_seconds: float = 5.0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class MaintenanceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # 0 disables the in-process sweep (run start_cleanup.py from cron instead)
    cleanup_interval_seconds: int = 3600


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    secret_key: str = ""
    env: str = "development"
    app_url: str = "http://localhost:8000"
    app_name: str = "auth-service"

    cors_origins: list[str] = ["http://localhost:3000"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    session: Optional[SessionSettings] = None
    otp: Optional[OTPSettings] = None
    reset: Optional[PasswordResetSettings] = None
    hashing: Optional[HashingSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None
    maintenance: Optional[MaintenanceSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs_and_secret(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.session is None:
            self.session = SessionSettings()
        if self.otp is None:
            self.otp = OTPSettings()
        if self.reset is None:
            self.reset = PasswordResetSettings()
        if self.hashing is None:
            self.hashing = HashingSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        if self.maintenance is None:
            self.maintenance = MaintenanceSettings()

        # Accept SECRET_KEY as the HS256 secret when JWT_SECRET is unset
        if not self.jwt.jwt_secret and self.secret_key:
            self.jwt.jwt_secret = self.secret_key

        if not self.reset.reset_password_url:
            self.reset.reset_password_url = f"{self.app_url.rstrip('/')}/reset-password"

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
