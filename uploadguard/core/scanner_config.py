"""ScannerConfig — immutable limits and tables injected into the scanner.

The default instance reproduces the production constants::

    ScannerConfig()                 # 10 MiB limit, built-in tables
    ScannerConfig.from_settings()   # limits read from UPLOADGUARD_* env vars

Overriding a single table leaves the rest untouched::

    config = dataclasses.replace(ScannerConfig(), max_url_count=25)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from uploadguard.config import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_BLOCKED_EXTENSIONS
from uploadguard.core.scan_result import FileCategory
from uploadguard.core.signatures import (
    BUILTIN_PATTERNS,
    EXECUTABLE_SIGNATURES,
    EXPECTED_MIME_TYPES,
    FILE_CATEGORIES,
    MIME_SIGNATURES,
    ExecutableSignature,
    MagicSignature,
    PatternEntry,
    load_patterns,
)

if TYPE_CHECKING:
    from uploadguard.config import Settings


@dataclass(frozen=True)
class ScannerConfig:
    """Static configuration of a :class:`~uploadguard.core.scanner.FileSecurityScanner`.

    Attributes:
        max_file_size_bytes: Largest accepted content length.
        allowed_extensions: Lowercase extensions (with leading dot) accepted
            for upload.
        blocked_extensions: Extensions always reported as dangerous.
        content_window_bytes: Number of leading bytes decoded as text for the
            pattern and URL checks.
        entropy_threshold: Byte entropy (bits) above which content is flagged.
        max_url_count: URL count above which content is flagged.
        engine_version: Version stamped on every result.
        malicious_patterns: Case-insensitive content patterns.
        mime_signatures: Magic-number table, first match wins.
        executable_signatures: Native executable signatures checked at offset 0.
        expected_mime_types: Extension → acceptable detected MIME types.
        file_categories: Extension → :class:`FileCategory`.
    """

    max_file_size_bytes: int = 10 * 1024 * 1024
    allowed_extensions: frozenset[str] = frozenset(DEFAULT_ALLOWED_EXTENSIONS)
    blocked_extensions: frozenset[str] = frozenset(DEFAULT_BLOCKED_EXTENSIONS)
    content_window_bytes: int = 1024 * 1024
    entropy_threshold: float = 7.5
    max_url_count: int = 10
    engine_version: str = "1.0.0"
    malicious_patterns: tuple[PatternEntry, ...] = BUILTIN_PATTERNS
    mime_signatures: tuple[MagicSignature, ...] = MIME_SIGNATURES
    executable_signatures: tuple[ExecutableSignature, ...] = EXECUTABLE_SIGNATURES
    expected_mime_types: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: EXPECTED_MIME_TYPES
    )
    file_categories: Mapping[str, FileCategory] = field(
        default_factory=lambda: FILE_CATEGORIES
    )

    def __post_init__(self) -> None:
        if self.max_file_size_bytes <= 0:
            raise ValueError("max_file_size_bytes must be positive")
        if self.content_window_bytes <= 0:
            raise ValueError("content_window_bytes must be positive")
        # Accept any iterable of extensions but store normalised frozensets.
        object.__setattr__(
            self, "allowed_extensions", frozenset(e.lower() for e in self.allowed_extensions)
        )
        object.__setattr__(
            self, "blocked_extensions", frozenset(e.lower() for e in self.blocked_extensions)
        )

    @property
    def max_file_size_mb(self) -> float:
        return self.max_file_size_bytes / 1024 / 1024

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ScannerConfig:
        """Build a config from application settings (``get_settings()`` by default)."""
        if settings is None:
            from uploadguard.config import get_settings

            settings = get_settings()

        return cls(
            max_file_size_bytes=settings.max_file_size_bytes,
            allowed_extensions=frozenset(settings.allowed_extensions),
            blocked_extensions=frozenset(settings.blocked_extensions),
            content_window_bytes=settings.content_window_bytes,
            entropy_threshold=settings.entropy_threshold,
            max_url_count=settings.max_url_count,
            engine_version=settings.engine_version,
            malicious_patterns=load_patterns(settings.custom_patterns_path),
        )
