"""Unit tests for uploadguard/services/audit.py (ScanAuditService).

Coverage targets
----------------
* HMAC-SHA256 signature over the canonical fields, verified with
  ``hmac.compare_digest``.
* Tampering with any signed field invalidates the signature.
* ``build_record`` copies scan result fields and leaves them empty when the
  scan was skipped.
* ``record`` emits a structured JSON log entry and awaits the sink.
* Sink failures are logged and suppressed.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from uploadguard.core.scan_result import FileCategory, ScanDetails, ScanResult
from uploadguard.services.audit import ScanAuditService

_KEY = "unit-test-audit-signing-key-32-chars-min"


def _scan_result() -> ScanResult:
    return ScanResult(
        is_safe=False,
        file_type=FileCategory.DOCUMENT,
        file_size_bytes=10,
        checksum="cd" * 32,
        threats=("Malicious pattern detected: <script",),
        scan_details=ScanDetails(
            scanned_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            scan_duration_ms=7,
            engine_version="1.0.0",
        ),
    )


def _expected_hmac(record) -> str:
    canonical = "|".join([
        str(record.id),
        record.checksum,
        "true" if record.success else "false",
        record.reason or "",
        record.created_at.isoformat(),
    ])
    return hmac.new(_KEY.encode(), canonical.encode(), hashlib.sha256).hexdigest()


class TestSigning:
    def test_record_is_signed_with_canonical_hmac(self) -> None:
        service = ScanAuditService(secret_key=_KEY)
        record = service.build_record(file_name="cv.pdf", file_size_bytes=10, success=True)
        assert record.hmac_signature == _expected_hmac(record)
        assert len(record.hmac_signature) == 64

    def test_verify_accepts_untouched_record(self) -> None:
        service = ScanAuditService(secret_key=_KEY)
        record = service.build_record(file_name="cv.pdf", file_size_bytes=10, success=True)
        assert service.verify(record) is True

    @pytest.mark.parametrize(
        "update",
        [
            {"success": False},
            {"checksum": "00" * 32},
            {"reason": "forged"},
            {"created_at": datetime(2020, 1, 1, tzinfo=timezone.utc)},
        ],
    )
    def test_verify_rejects_tampered_record(self, update: dict) -> None:
        service = ScanAuditService(secret_key=_KEY)
        record = service.build_record(file_name="cv.pdf", file_size_bytes=10, success=True)
        assert service.verify(record.model_copy(update=update)) is False

    def test_different_keys_produce_different_signatures(self) -> None:
        a = ScanAuditService(secret_key=_KEY)
        b = ScanAuditService(secret_key=_KEY + "-other")
        record = a.build_record(file_name="cv.pdf", file_size_bytes=10, success=True)
        assert b.verify(record) is False

    def test_secret_defaults_to_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("UPLOADGUARD_AUDIT_SECRET_KEY", _KEY)
        record = ScanAuditService().build_record(file_name="a.txt", file_size_bytes=1, success=True)
        assert record.hmac_signature == _expected_hmac(record)


class TestBuildRecord:
    def test_copies_scan_result_fields(self) -> None:
        record = ScanAuditService(secret_key=_KEY).build_record(
            file_name="page.txt",
            file_size_bytes=10,
            success=False,
            reason="Security scan failed",
            scan_result=_scan_result(),
            uploader_id="user-1",
            correlation_id="req-1",
        )
        assert record.file_type == "document"
        assert record.checksum == "cd" * 32
        assert record.threats == ["Malicious pattern detected: <script"]
        assert record.scan_duration_ms == 7
        assert record.uploader_id == "user-1"
        assert record.correlation_id == "req-1"
        assert record.created_at.tzinfo is not None

    def test_skipped_scan_leaves_scan_fields_empty(self) -> None:
        record = ScanAuditService(secret_key=_KEY).build_record(
            file_name="evil.exe", file_size_bytes=3, success=False, reason="Invalid file extension"
        )
        assert record.file_type is None
        assert record.checksum == ""
        assert record.threats == []
        assert record.scan_duration_ms is None

    def test_each_record_gets_a_unique_id(self) -> None:
        service = ScanAuditService(secret_key=_KEY)
        ids = {
            service.build_record(file_name="a.txt", file_size_bytes=1, success=True).id
            for _ in range(5)
        }
        assert len(ids) == 5


class TestRecord:
    @pytest.mark.asyncio
    async def test_emits_structured_log_entry(self, caplog) -> None:
        service = ScanAuditService(secret_key=_KEY)
        with caplog.at_level(logging.INFO, logger="uploadguard.services.audit"):
            record = await service.record(
                file_name="page.txt",
                file_size_bytes=10,
                success=False,
                reason="Security scan failed",
                scan_result=_scan_result(),
            )

        entries = [
            json.loads(r.getMessage())
            for r in caplog.records
            if r.name == "uploadguard.services.audit"
        ]
        assert entries[-1]["event"] == "upload_scan_audited"
        assert entries[-1]["audit_id"] == str(record.id)
        assert entries[-1]["success"] is False
        assert entries[-1]["threats"] == ["Malicious pattern detected: <script"]

    @pytest.mark.asyncio
    async def test_sink_receives_signed_record(self) -> None:
        sink = AsyncMock()
        service = ScanAuditService(secret_key=_KEY, sink=sink)
        record = await service.record(file_name="cv.pdf", file_size_bytes=10, success=True)
        sink.assert_awaited_once_with(record)
        assert service.verify(sink.await_args.args[0]) is True

    @pytest.mark.asyncio
    async def test_sink_failure_is_suppressed(self, caplog) -> None:
        sink = AsyncMock(side_effect=ConnectionError("audit store down"))
        service = ScanAuditService(secret_key=_KEY, sink=sink)
        with caplog.at_level(logging.ERROR, logger="uploadguard.services.audit"):
            record = await service.record(file_name="cv.pdf", file_size_bytes=10, success=True)
        assert record.success is True
        assert "Audit sink delivery failed" in caplog.text
