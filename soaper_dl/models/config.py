"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import re

from pydantic import BaseModel, Field, field_validator

DEFAULT_HOST = "https://soaper.live"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)


class SoaperConfig(BaseModel):
    """
    A validated, immutable configuration model.

    Built once at startup and handed to every component explicitly.
    """

    # Site
    host: str = DEFAULT_HOST
    subtitle_lang: str = "en"
    user_agent: str = DEFAULT_USER_AGENT

    # Transfer Settings
    max_workers: int = 16
    connections_per_host: int = 16
    max_attempts: int = 3
    base_delay: float = 1.5
    request_timeout: float = 60.0
    connect_timeout: float = 15.0

    # Output
    ffmpeg_path: str = "ffmpeg"
    output_dir: str = "."

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)

    class Config:
        """Pydantic model configuration."""

        frozen = True
        str_strip_whitespace = True

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Ensures the site origin is an http(s) URL without a trailing slash."""
        v = v.rstrip("/")
        if not re.match(r"^https?://[^/\s]+$", v):
            raise ValueError(f"Host must look like 'https://example.com', got: {v!r}")
        return v

    @field_validator("subtitle_lang")
    @classmethod
    def validate_lang(cls, v: str) -> str:
        """Language codes are matched case-insensitively, so store them lowercased."""
        if not v:
            raise ValueError("Subtitle language cannot be empty.")
        return v.lower()

    @field_validator("max_workers", "connections_per_host")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable concurrency ceiling."""
        if v < 1 or v > 64:
            raise ValueError("Concurrency settings must be between 1 and 64.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("base_delay", "request_timeout", "connect_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delays and timeouts cannot be negative.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
