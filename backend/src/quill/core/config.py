"""Configuration management for Quill.

Uses Pydantic Settings for type-safe, environment-based configuration.
Values supplied by a caller per request (see ``ProviderOptions``) are merged
over these process-level defaults field by field.
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv(override=False)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # App configuration
    app_name: str = Field("Quill", alias="QUILL_APP_NAME")
    version: str = Field("0.1.0", alias="QUILL_APP_VERSION")
    environment: str = Field("development", alias="QUILL_ENVIRONMENT")
    debug: bool = Field(False, alias="QUILL_DEBUG")

    # Transport bridge
    api_host: str = Field("127.0.0.1", alias="QUILL_API_HOST")
    api_port: int = Field(8765, alias="QUILL_API_PORT")
    # Per-subscriber notification backlog before the oldest entries are dropped
    stream_queue_size: int = Field(1000, alias="QUILL_STREAM_QUEUE_SIZE")
    # Finished tasks whose notifications stay available to late stream subscribers
    stream_retained_tasks: int = Field(100, alias="QUILL_STREAM_RETAINED_TASKS")

    # Logging configuration
    log_level: str = Field("INFO", alias="QUILL_LOG_LEVEL")
    log_format: str = Field("text", alias="QUILL_LOG_FORMAT")  # text or json
    log_file: str | None = Field(None, alias="QUILL_LOG_FILE")

    # Provider defaults
    default_provider: str = Field("ollama", alias="QUILL_DEFAULT_PROVIDER")

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4o-mini", alias="OPENAI_MODEL")
    openai_base_url: str = Field("https://api.openai.com/v1", alias="OPENAI_BASE_URL")

    ollama_model: str = Field("llama3.1", alias="OLLAMA_MODEL")
    ollama_base: str = Field("http://127.0.0.1:11434", alias="OLLAMA_BASE")

    # HTTP timeouts in seconds. None leaves the phase unbounded; a stalled
    # generation then stays running until it is cancelled.
    llm_connect_timeout: float | None = Field(None, alias="QUILL_LLM_CONNECT_TIMEOUT")
    llm_streaming_read_timeout: float | None = Field(None, alias="QUILL_LLM_STREAMING_READ_TIMEOUT")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()

    @field_validator("default_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",  # Ignore extra environment variables instead of forbidding them
    )


def get_settings() -> Settings:
    """Build a fresh settings instance from the environment."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - will be created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings


def reset_settings_instance() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings  # noqa: PLW0603
    settings = None
