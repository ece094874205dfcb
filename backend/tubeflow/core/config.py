"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded URLs, ports, or credentials.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="TubeFlow")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin for the single-page app"
    )
    default_user_id: str = Field(
        default="default-user", description="Owner used when a request omits user_id"
    )

    # Server
    port: int = Field(default=3000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")

    # Database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Gemini (text, image and speech generation)
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Gemini API key",
    )
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini REST API base URL",
    )
    gemini_text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model used for scripts, titles, descriptions, tags and timestamps",
    )
    gemini_image_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="Model used for thumbnail images",
    )
    gemini_tts_model: str = Field(
        default="gemini-2.5-flash-preview-tts",
        description="Model used for narrated audio",
    )
    gemini_tts_voice: str = Field(default="Alnilam", description="Prebuilt TTS voice")
    gemini_timeout: float = Field(
        default=120.0, description="Gemini HTTP request timeout in seconds"
    )
    gemini_max_retries: int = Field(
        default=3, description="Maximum retry attempts for Gemini requests"
    )
    gemini_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    gemini_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    gemini_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Generation
    generation_timeout: float = Field(
        default=300.0,
        description="Upper bound in seconds for one generation step (all retries included)",
    )
    title_count: int = Field(default=10, description="Number of titles to generate")
    thumbnail_count: int = Field(
        default=10, description="Number of thumbnail designs to generate"
    )
    thumbnail_request_delay: float = Field(
        default=1.0, description="Pause between thumbnail requests in seconds"
    )
    variation_history_limit: int = Field(
        default=20,
        description="Maximum entries kept in each generation history list",
    )

    # Audio
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable used by pydub")
    audio_bitrate: str = Field(default="320k", description="MP3 bitrate")
    audio_sample_rate: int = Field(default=24000, description="TTS PCM sample rate")
    audio_channels: int = Field(default=1, description="TTS PCM channel count")
    audio_sample_width: int = Field(default=2, description="TTS PCM bytes per sample")

    # S3-compatible object storage
    s3_bucket: str | None = Field(default=None, description="Bucket for generated assets")
    s3_endpoint_url: str | None = Field(
        default="https://sfo3.digitaloceanspaces.com",
        description="S3-compatible endpoint URL",
    )
    s3_access_key: str | None = Field(default=None, description="S3 access key")
    s3_secret_key: str | None = Field(default=None, description="S3 secret key")
    s3_region: str = Field(default="us-east-1", description="S3 region")
    s3_public_base_url: str | None = Field(
        default=None,
        description="Base URL for public object links (defaults to endpoint/bucket)",
    )
    s3_object_acl: str | None = Field(
        default="public-read", description="Canned ACL applied to uploaded objects"
    )
    s3_timeout: float = Field(default=30.0, description="S3 operation timeout in seconds")
    s3_max_retries: int = Field(default=3, description="Maximum retry attempts for S3")
    s3_retry_delay: float = Field(default=1.0, description="Base delay between retries")
    s3_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    s3_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Scheduler / generation poller
    scheduler_enabled: bool = Field(default=True, description="Run the background scheduler")
    scheduler_misfire_grace_time: int = Field(
        default=60, description="Seconds a missed run may still start late"
    )
    poller_interval_seconds: int = Field(
        default=120, description="Seconds between generation poller ticks"
    )
    poller_batch_size: int = Field(
        default=5, description="Pending topics claimed per poller pass"
    )
    poller_claim_timeout_seconds: int = Field(
        default=900,
        description="Processing claims older than this are reclaimed",
    )
    poller_max_attempts: int = Field(
        default=3,
        description="Claims after which a stale topic is failed instead of retried",
    )

    # Keyword import
    import_max_files: int = Field(default=20, description="Files accepted per upload")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
