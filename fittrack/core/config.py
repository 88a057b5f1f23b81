"""Application configuration using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FT_",
        extra="ignore",
    )

    environment: Literal["local", "test", "staging", "production"] = Field(default="local")
    service_name: str = Field(default="fittrack-delivery")
    database_url: str = Field(default="sqlite:///./data/fittrack.db")
    sql_echo: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # Scheduling feature flags
    email_notifications_enabled: bool = Field(default=True)
    disabled_notification_types: List[str] | str = Field(default_factory=list)

    # Email delivery
    email_delivery_mode: Literal["file", "smtp"] = Field(default="file")
    email_sender_enabled: bool = Field(default=True)
    email_from_address: str = Field(default="no-reply@fittrack.local")
    email_from_name: str = Field(default="FitTrack Trainer")
    smtp_host: str | None = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_username: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    smtp_timeout_seconds: float = Field(default=30.0)
    email_output_directory: str = Field(default="./data/outbox-emails")
    email_template_root: str | None = Field(default=None)
    email_default_culture: str = Field(default="en-US")
    invitation_base_url: str = Field(default="http://localhost:3000/invitations")

    # Retry and claiming policy
    max_manual_requeue_attempts: int = Field(default=5, ge=1)
    max_delivery_attempts: int = Field(default=5, ge=1)
    retry_base_delay_seconds: float = Field(default=30.0, gt=0)
    retry_max_exponent: int = Field(default=8, ge=1)
    retry_jitter_ratio: float = Field(default=0.2, ge=0)
    processing_lease_seconds: int = Field(default=300, ge=1)
    dispatch_batch_size: int = Field(default=50, ge=1)
    sweep_interval_seconds: float = Field(default=15.0, gt=0)

    # Background jobs
    background_jobs_enabled: bool = Field(default=True)
    event_topic_arn: str | None = Field(default=None)
    temporal_host: str | None = Field(default=None)
    temporal_namespace: str | None = Field(default=None)
    temporal_api_key: str | None = Field(default=None)
    temporal_task_queue: str = Field(default="fittrack-delivery")
    temporal_tls_enabled: bool = Field(default=True)
    job_max_attempts: int = Field(default=3, ge=1)
    job_activity_timeout_seconds: int = Field(default=120, ge=1)
    worker_max_concurrent_activities: int = Field(default=8, ge=1)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("disabled_notification_types")
    @classmethod
    def parse_disabled_types(cls, value: str | List[str] | None) -> List[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator(
        "smtp_host",
        "smtp_username",
        "smtp_password",
        "email_template_root",
        "event_topic_arn",
        "temporal_host",
        "temporal_namespace",
        "temporal_api_key",
        mode="before",
    )
    @classmethod
    def empty_string_to_none(cls, value: str | None) -> str | None:
        if value == "":
            return None
        return value


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings instance."""

    return AppSettings()
