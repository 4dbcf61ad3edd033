# content_scheduler/config.py
"""Service configuration loaded from environment (.env) and defaults."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Content Scheduler"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./content_scheduler.db"
    # unset -> no cross-pass dispatch lock
    redis_url: Optional[str] = None
    dispatch_lock_ttl_seconds: int = 300

    # shared secret for the external trigger (cron) and CRUD callers
    trigger_token: Optional[str] = None

    # Replicate
    replicate_api_token: Optional[str] = None
    replicate_base_url: str = "https://api.replicate.com/v1"
    replicate_timeout_seconds: int = 60
    image_model: str = "black-forest-labs/flux-kontext-max"
    print_on_shirt_model: str = "flux-kontext-apps/multi-image-kontext-max"
    video_model: str = "kwaivgi/kling-v2.1"

    # Object storage (Supabase Storage REST API)
    storage_url: Optional[str] = None
    storage_service_key: Optional[str] = None
    storage_bucket: str = "generated-images"
    storage_timeout_seconds: int = 120

    # Pass tuning
    dispatch_batch_size: int = 5
    completion_batch_size: int = 50
    fanout_concurrency: int = 4
    windowed_limit_types: List[str] = ["video-generation"]
    # unset -> stuck "processing" rows are re-polled forever
    processing_timeout_hours: Optional[float] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
