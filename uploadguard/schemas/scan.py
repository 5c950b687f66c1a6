"""Pydantic schemas for scan results and scan audit records.

``ScanResultOut`` is the camelCase wire shape returned to the hosting web
application (``isSafe``, ``fileType``, ``scanDetails.scanDuration`` …).
``ScanAuditRecord`` is the signed summary handed to the audit sink after every
screened upload.

Usage::

    from uploadguard.schemas.scan import ScanResultOut

    payload = ScanResultOut.from_result(result).model_dump(mode="json", by_alias=True)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from uploadguard.core.scan_result import ScanResult

FileTypeName = Literal["document", "image", "archive", "unknown"]


class ScanDetailsOut(BaseModel):
    """Timing and engine metadata of a scan."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    scanned_at: datetime = Field(alias="scannedAt")
    scan_duration_ms: int = Field(ge=0, alias="scanDuration")
    engine_version: str = Field(alias="engineVersion")


class ScanResultOut(BaseModel):
    """Serialisable view of :class:`~uploadguard.core.scan_result.ScanResult`."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_safe: bool = Field(alias="isSafe")
    file_type: FileTypeName = Field(alias="fileType")
    file_size_bytes: int = Field(ge=0, alias="fileSize")
    checksum: str
    threats: list[str] = Field(default_factory=list)
    scan_details: ScanDetailsOut = Field(alias="scanDetails")

    @model_validator(mode="after")
    def check_safety_matches_threats(self) -> ScanResultOut:
        if self.is_safe != (len(self.threats) == 0):
            raise ValueError("isSafe must be true exactly when threats is empty")
        return self

    @classmethod
    def from_result(cls, result: ScanResult) -> ScanResultOut:
        details = result.scan_details
        return cls(
            is_safe=result.is_safe,
            file_type=result.file_type.value,
            file_size_bytes=result.file_size_bytes,
            checksum=result.checksum,
            threats=list(result.threats),
            scan_details=ScanDetailsOut(
                scanned_at=details.scanned_at,
                scan_duration_ms=details.scan_duration_ms,
                engine_version=details.engine_version,
            ),
        )


class ScanAuditRecord(BaseModel):
    """Signed audit summary of one screened upload.

    Attributes:
        id: Unique record identifier.
        uploader_id: Identifier of the uploading user, when known.
        correlation_id: Request-scoped trace identifier, when known.
        file_name: Sanitised filename for accepted uploads, original name
            otherwise.
        file_size_bytes: Declared upload size.
        file_type: Scanner category, ``None`` when the scan was skipped.
        checksum: SHA-256 of the content, ``""`` when the scan was skipped or
            failed.
        threats: Threats reported by the scanner.
        scan_duration_ms: Scan duration, ``None`` when the scan was skipped.
        success: ``True`` for accepted uploads.
        reason: Rejection reason, ``None`` for accepted uploads.
        created_at: UTC creation timestamp.
        hmac_signature: HMAC-SHA256 hex digest over the canonical fields.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    uploader_id: str | None = None
    correlation_id: str | None = None
    file_name: str
    file_size_bytes: int = Field(ge=0)
    file_type: FileTypeName | None = None
    checksum: str = ""
    threats: list[str] = Field(default_factory=list)
    scan_duration_ms: int | None = Field(default=None, ge=0)
    success: bool
    reason: str | None = None
    created_at: datetime
    hmac_signature: str = ""
