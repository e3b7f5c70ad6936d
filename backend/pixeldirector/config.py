"""Application configuration from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    google_api_key: str = ""
    replicate_api_token: str = ""
    pixeldirector_env: str = "development"
    pixeldirector_log_level: str = "debug"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Model routing
    model_planner_cheap: str = "claude-haiku-4-5-20251001"
    model_planner: str = "claude-sonnet-4-5-20250929"
    model_native_edit: str = "gemini-2.5-flash-image"
    native_edit_quality: Literal["standard", "highest"] = "highest"
    use_native_edit: bool = True
    segmentation_backend: Literal["grounded_sam", "detect_then_mask", "native"] = "grounded_sam"

    # Replicate job API
    replicate_base_url: str = "https://api.replicate.com/v1"
    poll_interval_s: float = 1.0
    poll_timeout_s: float = 300.0

    # Retry policies
    generation_max_attempts: int = 3
    generation_base_delay_s: float = 1.0
    submission_max_attempts: int = 6
    rate_limit_delay_s: float = 5.0

    # Uploaded image store
    image_store_ttl_s: float = 3600.0
    image_store_max_entries: int = 128

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
