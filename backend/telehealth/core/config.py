from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    project_name: str = "Telehealth Scheduling Backend"
    database_url: str = Field(
        default="sqlite:///./telehealth.db",
        description="SQLModel compatible database URI",
    )
    jwt_secret_key: str = Field(default="change-me", description="JWT signing secret")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    first_superuser: str = "admin"
    first_superuser_password: str = "admin123"
    log_level: str = "INFO"
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URI for the arq reminder queue; in-memory queue when unset",
    )
    reminder_queue_name: str = "arq:reminders"
    status_cache_ttl_seconds: Optional[int] = Field(
        default=None,
        description="Seconds before a cached status id is re-read; never expires when unset",
    )
    default_cancel_reason: str = "No reason provided"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
