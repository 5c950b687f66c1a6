"""Application configuration via Pydantic Settings.

All configuration is driven by environment variables prefixed with
``UPLOADGUARD_``.  Every scanner limit has a production default, so an empty
environment yields a working configuration; malformed values raise a
``ValidationError`` at startup so misconfigured deployments fail fast.

Usage::

    from uploadguard.config import get_settings

    settings = get_settings()
    print(settings.max_file_size_bytes)

The ``get_settings`` function is cached with ``functools.lru_cache``. To override
settings in tests, set the relevant environment variables and call
``get_settings.cache_clear()`` before the next ``get_settings()`` call.

List-valued settings are read as JSON arrays, e.g.::

    UPLOADGUARD_ALLOWED_EXTENSIONS='[".pdf", ".png"]'
"""
from __future__ import annotations

import functools

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (
    ".pdf", ".doc", ".docx", ".txt", ".rtf",
    ".jpg", ".jpeg", ".png", ".gif", ".webp",
    ".zip", ".rar",
)

DEFAULT_BLOCKED_EXTENSIONS: tuple[str, ...] = (
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr",
    ".vbs", ".js", ".jar", ".php", ".asp", ".aspx",
)

# Development-only signing key; override UPLOADGUARD_AUDIT_SECRET_KEY in production.
_DEV_AUDIT_SECRET_KEY = "uploadguard-development-audit-secret-key"


class Settings(BaseSettings):
    """UploadGuard settings.

    Environment variables are read case-insensitively. A ``.env`` file in the
    working directory is loaded automatically when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="UPLOADGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Scanner limits
    max_file_size_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Largest accepted upload in bytes (default: 10 MiB)",
    )
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS),
        description="Extensions accepted for upload (lowercase, leading dot)",
    )
    blocked_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_EXTENSIONS),
        description="Extensions always reported as dangerous",
    )
    content_window_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Leading bytes decoded as text for pattern and URL checks",
    )
    entropy_threshold: float = Field(
        default=7.5,
        gt=0.0,
        le=8.0,
        description="Shannon entropy (bits/byte) above which content is flagged",
    )
    max_url_count: int = Field(
        default=10,
        ge=0,
        description="URL count in the text window above which content is flagged",
    )
    engine_version: str = Field(
        default="1.0.0",
        min_length=1,
        description="Version string stamped on every scan result",
    )
    custom_patterns_path: str | None = Field(
        default=None,
        description="Optional JSON file of extra malicious content patterns",
    )

    # Worker thread pool
    scan_max_workers: int = Field(
        default=4,
        ge=1,
        description="Thread pool size for scans dispatched from async callers",
    )

    # Audit
    audit_secret_key: str = Field(
        default=_DEV_AUDIT_SECRET_KEY,
        min_length=32,
        description="HMAC signing key for scan audit records (min 32 chars)",
    )

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment: development, staging, or production",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level used by configure_logging()",
    )

    @field_validator("allowed_extensions", "blocked_extensions")
    @classmethod
    def normalise_extensions(cls, v: list[str]) -> list[str]:
        normalised = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                raise ValueError("extensions must not be empty strings")
            if not ext.startswith("."):
                ext = f".{ext}"
            normalised.append(ext)
        return normalised

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v!r}")
        return level


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    The first call reads environment variables (and ``.env``). Subsequent calls
    return the cached instance. Clear the cache with ``get_settings.cache_clear()``
    between tests.
    """
    return Settings()
