"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./wecarry.db"

    # Branding used in notification templates
    APP_NAME: str = "WeCarry"
    UI_URL: str = "http://localhost:3000"
    SUPPORT_EMAIL: str = "support@example.com"

    # Email
    EMAIL_PROVIDER: str = "dummy"  # dummy | resend
    EMAIL_FROM_ADDRESS: str = "no_reply@example.com"
    RESEND_API_KEY: str = ""

    # Login state cookie (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    AUTH_STATE_EXPIRES_MINUTES: int = 15

    # Bearer access tokens
    ACCESS_TOKEN_LIFETIME_SECONDS: int = 28800
    ACCESS_TOKEN_CLEANUP_DELAY_MINUTES: int = 480

    # Delayed notifications
    NEW_MESSAGE_NOTIFICATION_DELAY_SECONDS: int = 600

    # Identity providers
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    AUTH_CALLBACK_URL: str = "http://localhost:8000/auth/callback"

    # Object storage
    STORAGE_BACKEND: str = "local"  # local | s3
    LOCAL_STORAGE_PATH: str = "/tmp/wecarry-files"
    S3_BUCKET: str = "wecarry-files"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""  # Set for minio / S3-compatible storage
    S3_URL_STYLE: str = ""  # path | virtual
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    MAX_FILE_DELETE: int = 10  # Safety cap for unlinked file cleanup

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 10  # Login attempts
    RATE_LIMIT_API: int = 120  # General API

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
