"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in app.main.
    cors_origins: str = ""
    # Externally reachable base URL of this API, used to build provider webhook URLs.
    public_base_url: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # REPLICATE (mode: standard)
    # ===========================================
    replicate_api_token: str = ""
    replicate_api_url: str = "https://api.replicate.com/v1"
    replicate_standard_model: str = "wavespeedai/wan-2.1-i2v-480p"
    replicate_timeout: float = 30.0
    # HMAC secret for Replicate-Signature. Empty = webhook accepted unsigned.
    replicate_webhook_secret: str = ""

    # ===========================================
    # PRIMARY VIDEO API (mode: premium)
    # ===========================================
    video_api_url: str = ""
    video_api_token: str = ""
    video_api_timeout: float = 30.0
    video_api_webhook_secret: str = ""

    # ===========================================
    # CATALOG (credits per generation attempt)
    # ===========================================
    standard_mode_cost: int = 1
    premium_mode_cost: int = 2

    # ===========================================
    # PROMPT ENHANCER (OpenAI)
    # ===========================================
    openai_api_key: str = ""
    prompt_enhancer_enabled: bool = True
    prompt_enhancer_model: str = "gpt-4o-mini"
    prompt_enhancer_timeout: float = 15.0
    prompt_enhancer_max_chars: int = 1000

    # ===========================================
    # GIF CONVERTER
    # ===========================================
    gif_converter_url: str = ""
    gif_converter_api_key: str = ""
    gif_converter_fps: int = 16
    gif_converter_timeout: float = 60.0
    gif_converter_poll_interval: float = 2.0
    gif_converter_max_attempts: int = 30

    # ===========================================
    # STORAGE
    # ===========================================
    storage_backend: str = "local"  # local, supabase
    storage_base_path: str = "/data/gifs"
    storage_public_base_url: str = "http://localhost:8000/files"
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_gifs_bucket: str = "gifs"
    supabase_timeout: float = 30.0

    # ===========================================
    # POLLING SWEEP
    # ===========================================
    sweep_interval_seconds: int = 30
    sweep_batch_size: int = 5
    # A success notifier owns transcoding for this long; after that the sweep may retry.
    transcode_lease_seconds: int = 300
    # processing jobs that never got a provider id (dispatch crashed) are failed and refunded after this
    orphan_dispatch_minutes: int = 15
    # processing jobs still pending at the provider after this are failed and refunded
    processing_timeout_minutes: int = 180

    # ===========================================
    # INTERNAL ENDPOINT SECRETS
    # ===========================================
    cron_secret: str = ""
    process_secret: str = ""
    payments_secret: str = ""

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30
    cb_storage: str = "redis"  # redis, memory

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("storage_backend", "cb_storage")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("standard_mode_cost", "premium_mode_cost")
    @classmethod
    def validate_cost(cls, v: int) -> int:
        """Catalog costs are positive integers."""
        if v <= 0:
            raise ValueError("mode cost must be a positive integer")
        return v

    @property
    def webhook_base_url(self) -> str:
        return self.public_base_url.rstrip("/")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
