"""UploadScreeningService — accept/reject decision for one uploaded file.

The service sequences the checks an upload endpoint performs before it
persists or serves a file:

1. **extension pre-check** — reject early when the declared extension is not
   on the allow-list (``"Invalid file extension"``).
2. **size pre-check** — reject early when the declared size exceeds the limit
   (``"File size exceeded"``).
3. **sanitise** the client-supplied filename.
4. **scan** the content with :class:`~uploadguard.core.scanner.FileSecurityScanner`
   — in-memory bytes via ``scan_async``, a disk path via ``scan_file_async``.
5. **decide** — an unsafe scan rejects the upload (``"Security scan failed"``).
6. **audit** — every outcome is handed to
   :class:`~uploadguard.services.audit.ScanAuditService`.

The service never creates or deletes files; the caller owns any temporary
file passed as *path*.  Decisions are returned as values; callers that prefer
exceptions use :meth:`UploadDecision.raise_for_rejection`, mapping
:class:`InvalidUploadError` to HTTP 400 and :class:`UnsafeUploadError` to
HTTP 403.

Usage::

    service = UploadScreeningService(FileSecurityScanner(), ScanAuditService())
    decision = await service.screen(original_name="cv.pdf", data=payload)
    decision.raise_for_rejection()
    store(decision.sanitized_name, payload)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from uploadguard.core.filenames import extract_extension
from uploadguard.core.scan_result import ScanResult
from uploadguard.core.scanner import FileSecurityScanner
from uploadguard.services.audit import ScanAuditService

logger = logging.getLogger(__name__)

REASON_INVALID_EXTENSION = "Invalid file extension"
REASON_SIZE_EXCEEDED = "File size exceeded"
REASON_SCAN_FAILED = "Security scan failed"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UploadRejectedError(Exception):
    """Base class for rejected uploads.

    Attributes:
        decision: The :class:`UploadDecision` that caused the rejection.
    """

    def __init__(self, decision: UploadDecision) -> None:
        super().__init__(f"Upload rejected ({decision.reason}): {decision.original_name}")
        self.decision = decision


class InvalidUploadError(UploadRejectedError):
    """The upload failed a pre-check (extension or size); the content was not scanned."""


class UnsafeUploadError(UploadRejectedError):
    """The upload was scanned and reported at least one threat."""

    @property
    def threats(self) -> tuple[str, ...]:
        result = self.decision.scan_result
        return result.threats if result is not None else ()


# ---------------------------------------------------------------------------
# Decision type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadDecision:
    """Outcome of screening one upload.

    Attributes:
        accepted: ``True`` when the file may be persisted and served.
        original_name: Filename as supplied by the client.
        sanitized_name: Storage-safe filename; ``""`` for pre-check rejections.
        size_bytes: Content length used for the size pre-check.
        reason: Rejection reason, ``None`` for accepted uploads.
        scan_result: Scanner verdict, ``None`` when a pre-check rejected the
            upload before scanning.
    """

    accepted: bool
    original_name: str
    sanitized_name: str
    size_bytes: int
    reason: str | None = None
    scan_result: ScanResult | None = None

    def raise_for_rejection(self) -> None:
        """Raise the matching :class:`UploadRejectedError` if the upload was rejected."""
        if self.accepted:
            return
        if self.scan_result is None:
            raise InvalidUploadError(self)
        raise UnsafeUploadError(self)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class UploadScreeningService:
    """Screens uploads with a scanner and records every outcome.

    Args:
        scanner: The scanner used for content checks.
        audit_service: Receives a record for every decision.
    """

    def __init__(
        self,
        scanner: FileSecurityScanner,
        audit_service: ScanAuditService,
    ) -> None:
        self._scanner = scanner
        self._audit = audit_service

    async def screen(
        self,
        *,
        original_name: str,
        data: bytes | None = None,
        path: str | Path | None = None,
        uploader_id: str | None = None,
        correlation_id: str | None = None,
    ) -> UploadDecision:
        """Screen one upload supplied either as *data* or as a file at *path*.

        Raises:
            ValueError: If both or neither of *data* and *path* are given.
        """
        if (data is None) == (path is None):
            raise ValueError("exactly one of 'data' or 'path' must be supplied")

        if data is not None:
            size = len(data)
        else:
            try:
                size = await asyncio.to_thread(lambda: Path(path).stat().st_size)
            except OSError:
                # scan_file() reports the unreadable file as a scan error.
                size = 0

        if not self._scanner.is_allowed_extension(extract_extension(original_name)):
            return await self._reject_early(
                original_name, size, REASON_INVALID_EXTENSION, uploader_id, correlation_id
            )

        if not self._scanner.is_file_size_allowed(size):
            return await self._reject_early(
                original_name, size, REASON_SIZE_EXCEEDED, uploader_id, correlation_id
            )

        sanitized = self._scanner.sanitize_file_name(original_name)

        if data is not None:
            result = await self._scanner.scan_async(data, original_name)
        else:
            result = await self._scanner.scan_file_async(path, original_name)

        if not result.is_safe:
            logger.warning(
                "Upload rejected by security scan: file_name=%r uploader_id=%s threats=%s",
                original_name,
                uploader_id,
                list(result.threats),
            )
            await self._audit.record(
                file_name=original_name,
                file_size_bytes=size,
                success=False,
                reason=REASON_SCAN_FAILED,
                scan_result=result,
                uploader_id=uploader_id,
                correlation_id=correlation_id,
            )
            return UploadDecision(
                accepted=False,
                original_name=original_name,
                sanitized_name=sanitized,
                size_bytes=size,
                reason=REASON_SCAN_FAILED,
                scan_result=result,
            )

        await self._audit.record(
            file_name=sanitized,
            file_size_bytes=size,
            success=True,
            scan_result=result,
            uploader_id=uploader_id,
            correlation_id=correlation_id,
        )
        logger.info(
            "Secure file upload accepted: file_name=%r uploader_id=%s",
            sanitized,
            uploader_id,
        )
        return UploadDecision(
            accepted=True,
            original_name=original_name,
            sanitized_name=sanitized,
            size_bytes=size,
            scan_result=result,
        )

    async def _reject_early(
        self,
        original_name: str,
        size: int,
        reason: str,
        uploader_id: str | None,
        correlation_id: str | None,
    ) -> UploadDecision:
        logger.info(
            "Upload rejected before scan: file_name=%r reason=%s", original_name, reason
        )
        await self._audit.record(
            file_name=original_name,
            file_size_bytes=size,
            success=False,
            reason=reason,
            uploader_id=uploader_id,
            correlation_id=correlation_id,
        )
        return UploadDecision(
            accepted=False,
            original_name=original_name,
            sanitized_name="",
            size_bytes=size,
            reason=reason,
        )
