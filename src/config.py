from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    Credentials are read once at startup and never mutated at runtime.
    """

    # Backend that tracks recording lifecycle state
    next_api_host: str = "http://localhost:3000/api"

    # Cloudinary (storage + transcoding)
    cloudinary_name: str = ""
    cloudinary_key: str = ""
    cloudinary_secret: str = ""
    cloudinary_folder: str = "video-recording-opal"

    # Speech-to-text
    stt_provider: str = "speechmatics"
    speechmatics_api_key: str = ""
    speechmatics_url: str = "https://asr.api.speechmatics.com/v2"
    assemblyai_api_key: str = ""
    transcription_language: str = "en"

    # Summarization / title generation
    summary_provider: str = "huggingface"
    huggingface_api_key: str = ""
    summary_model_url: str = (
        "https://api-inference.huggingface.co/models/philschmid/bart-large-cnn-samsum"
    )
    anthropic_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    gemini_api_key: str = ""
    title_model: str = "gemini-2.0-flash"

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    log_level: str = "INFO"
    temp_dir: str = ""  # empty -> system temp dir
    max_upload_bytes: int = 50 * 1024 * 1024
    max_session_bytes: int = 500 * 1024 * 1024
    max_buffered_bytes: int = 2 * 1024 * 1024 * 1024

    # Outbound calls
    request_timeout: float = 30.0
    upload_timeout: float = 600.0
    retry_attempts: int = 3
    retry_backoff: float = 1.0
    derivative_poll_attempts: int = 6
    stt_poll_interval: float = 5.0
    stt_timeout: float = 900.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
