"""Application configuration using pydantic-settings."""
import re
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "local"
    app_name: str = "findmyestate-api"
    app_url: str = Field("http://localhost:5173", validation_alias=AliasChoices("APP_URL", "app_url"))
    database_url: str = Field(
        ...,
        validation_alias=AliasChoices("DATABASE_URL", "database_url")
    )
    allowed_origins: str = "*"
    log_level: str = "INFO"

    # Auth (JWT)
    jwt_secret_key: str = Field(
        "change-me",
        validation_alias=AliasChoices("JWT_SECRET", "JWT_SECRET_KEY", "jwt_secret_key"),
    )
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    jwt_expiry_days: int = Field(7, validation_alias="JWT_EXPIRY_DAYS")
    min_password_length: int = Field(6, validation_alias="MIN_PASSWORD_LENGTH")

    # Object storage (listing images + tax receipts)
    storage_dir: str = Field("data/storage", validation_alias="STORAGE_DIR")
    storage_bucket: str = Field("property-images", validation_alias="STORAGE_BUCKET")
    storage_public_base_url: str = Field("/storage", validation_alias="STORAGE_PUBLIC_BASE_URL")
    max_upload_mb: int = Field(10, validation_alias="MAX_UPLOAD_MB")

    # Email (password reset)
    email_mode: str = Field("file", validation_alias="EMAIL_MODE")  # "file" | "smtp"
    email_from: Optional[str] = Field(None, validation_alias="EMAIL_FROM")
    email_smtp_host: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_HOST")
    email_smtp_port: Optional[int] = Field(None, validation_alias="EMAIL_SMTP_PORT")
    email_smtp_username: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_USERNAME")
    email_smtp_password: Optional[str] = Field(None, validation_alias="EMAIL_SMTP_PASSWORD")
    email_smtp_use_tls: bool = Field(True, validation_alias="EMAIL_SMTP_USE_TLS")
    email_outbox_dir: str = Field("data/outbox", validation_alias="EMAIL_OUTBOX_DIR")

    # Scheduler (orphaned upload cleanup)
    scheduler_enabled: bool = Field(False, validation_alias="SCHEDULER_ENABLED")
    orphan_cleanup_interval_hours: int = Field(24, validation_alias="ORPHAN_CLEANUP_INTERVAL_HOURS")
    orphan_grace_hours: int = Field(24, validation_alias="ORPHAN_GRACE_HOURS")

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Normalize DATABASE_URL and ensure SSL is required for PostgreSQL."""
        if v.startswith("sqlite"):
            return v

        # Hosted providers hand out postgres:// URLs
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+psycopg://", 1)
        if v.startswith("postgresql://"):
            v = v.replace("postgresql://", "postgresql+psycopg://", 1)

        if not v.startswith("postgresql+psycopg://"):
            raise ValueError("DATABASE_URL must start with postgresql://, postgresql+psycopg://, or sqlite")

        if "sslmode=" not in v:
            separator = "&" if "?" in v else "?"
            v = f"{v}{separator}sslmode=require"
        elif "sslmode=require" not in v:
            v = re.sub(r"sslmode=[^&]+", "sslmode=require", v)

        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        if self.allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


settings = Settings()
