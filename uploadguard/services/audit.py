"""ScanAuditService — signed, structured audit records for screened uploads.

:class:`ScanAuditService` turns the outcome of one upload screening into a
:class:`~uploadguard.schemas.scan.ScanAuditRecord`, signs it with
HMAC-SHA256 over the canonical immutable fields, emits a structured JSON log
entry, and hands the record to an optional async sink (for example a
repository that persists it).

Audit delivery is **best-effort**: a failing sink is logged at ERROR level and
suppressed, so an audit outage never blocks or fails an upload.

Usage::

    from uploadguard.services.audit import ScanAuditService

    service = ScanAuditService(sink=repository.save)
    record = await service.record(
        file_name="cv.pdf",
        file_size_bytes=1024,
        success=True,
        scan_result=result,
        uploader_id="user-42",
    )
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from uploadguard.core.scan_result import ScanResult
from uploadguard.schemas.scan import ScanAuditRecord

logger = logging.getLogger(__name__)

AuditSink = Callable[[ScanAuditRecord], Awaitable[Any]]


class ScanAuditService:
    """Audit log producer with HMAC-SHA256 integrity signing.

    Args:
        secret_key: Raw HMAC secret.  Defaults to ``settings.audit_secret_key``.
        sink: Optional async callable receiving every signed record.  When
            ``None`` records are only logged.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        sink: AuditSink | None = None,
    ) -> None:
        if secret_key is None:
            from uploadguard.config import get_settings

            secret_key = get_settings().audit_secret_key
        self._secret_key: bytes = secret_key.encode("utf-8")
        self._sink = sink

    # ------------------------------------------------------------------
    # Signature helpers
    # ------------------------------------------------------------------

    def compute_hmac(self, record: ScanAuditRecord) -> str:
        """Return the HMAC-SHA256 hex digest for *record*.

        The canonical message is
        ``{id}|{checksum}|{success}|{reason}|{created_at}`` with ``success``
        rendered as ``true``/``false``, a missing reason as ``""`` and
        ``created_at`` as ISO-8601 with UTC offset.
        """
        canonical = "|".join([
            str(record.id),
            record.checksum,
            "true" if record.success else "false",
            record.reason or "",
            record.created_at.isoformat(),
        ])
        return hmac.new(
            self._secret_key,
            canonical.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def verify(self, record: ScanAuditRecord) -> bool:
        """Return ``True`` if *record*'s stored signature is valid."""
        return hmac.compare_digest(self.compute_hmac(record), record.hmac_signature)

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def build_record(
        self,
        *,
        file_name: str,
        file_size_bytes: int,
        success: bool,
        reason: str | None = None,
        scan_result: ScanResult | None = None,
        uploader_id: str | None = None,
        correlation_id: str | None = None,
    ) -> ScanAuditRecord:
        """Build and sign a record summarising one screened upload."""
        fields: dict[str, Any] = {
            "uploader_id": uploader_id,
            "correlation_id": correlation_id,
            "file_name": file_name,
            "file_size_bytes": file_size_bytes,
            "success": success,
            "reason": reason,
            "created_at": datetime.now(timezone.utc),
        }
        if scan_result is not None:
            fields.update(
                file_type=scan_result.file_type.value,
                checksum=scan_result.checksum,
                threats=list(scan_result.threats),
                scan_duration_ms=scan_result.scan_details.scan_duration_ms,
            )

        record = ScanAuditRecord(**fields)
        return record.model_copy(update={"hmac_signature": self.compute_hmac(record)})

    async def record(self, **kwargs: Any) -> ScanAuditRecord:
        """Build, sign, log, and deliver an audit record.

        Accepts the keyword arguments of :meth:`build_record`.

        Returns:
            The signed record, whether or not sink delivery succeeded.
        """
        record = self.build_record(**kwargs)

        log_entry: dict[str, Any] = {
            "event": "upload_scan_audited",
            "audit_id": str(record.id),
            "correlation_id": record.correlation_id,
            "uploader_id": record.uploader_id,
            "file_name": record.file_name,
            "file_size_bytes": record.file_size_bytes,
            "file_type": record.file_type,
            "checksum": record.checksum,
            "success": record.success,
            "reason": record.reason,
            "threats": record.threats,
            "scan_duration_ms": record.scan_duration_ms,
        }
        logger.info(json.dumps(log_entry))

        if self._sink is not None:
            try:
                await self._sink(record)
            except Exception as exc:
                logger.error(
                    "Audit sink delivery failed for audit_id=%s: %r", record.id, exc
                )

        return record
