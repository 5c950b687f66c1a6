"""Immutable result types produced by the file security scanner.

A :class:`ScanResult` is built exactly once at the end of a scan and handed
back to the caller; nothing in UploadGuard mutates or retains it afterwards.

Usage::

    from uploadguard.core.scanner import FileSecurityScanner

    result = FileSecurityScanner().scan(data, "resume.pdf")
    if not result.is_safe:
        print(result.threats)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from uploadguard.schemas.scan import ScanResultOut


class FileCategory(str, Enum):
    """Coarse file category derived from the declared extension."""

    DOCUMENT = "document"
    IMAGE = "image"
    ARCHIVE = "archive"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ScanDetails:
    """Diagnostic metadata attached to every scan.

    Attributes:
        scanned_at: UTC timestamp taken when the scan finished.
        scan_duration_ms: Wall-clock time from entry to exit of the scan call.
        engine_version: Version string of the scanner configuration.
    """

    scanned_at: datetime
    scan_duration_ms: int
    engine_version: str

    def __post_init__(self) -> None:
        if self.scan_duration_ms < 0:
            raise ValueError("scan_duration_ms must be non-negative")


@dataclass(frozen=True)
class ScanResult:
    """Verdict of a single file security scan.

    Attributes:
        is_safe: ``True`` iff no threat was recorded.  Construction fails
            when this disagrees with *threats*.
        file_type: Category derived from the declared extension.
        file_size_bytes: Byte length of the scanned content (``0`` when the
            scan failed).
        checksum: SHA-256 hex digest of the full content (``""`` when the
            scan failed).
        threats: Human-readable findings in the order they were detected.
        scan_details: Timing and engine metadata.
    """

    is_safe: bool
    file_type: FileCategory
    file_size_bytes: int
    checksum: str
    threats: tuple[str, ...] = field(default_factory=tuple)
    scan_details: ScanDetails = field(
        default_factory=lambda: ScanDetails(
            scanned_at=datetime.now(timezone.utc),
            scan_duration_ms=0,
            engine_version="unknown",
        )
    )

    def __post_init__(self) -> None:
        if self.is_safe != (len(self.threats) == 0):
            raise ValueError("is_safe must be True exactly when threats is empty")
        if self.file_size_bytes < 0:
            raise ValueError("file_size_bytes must be non-negative")

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON-ready representation of this result."""
        return ScanResultOut.from_result(self).model_dump(mode="json", by_alias=True)
