"""FileSecurityScanner — single-pass safety verdict for uploaded files.

:class:`FileSecurityScanner` runs a fixed sequence of independent checks over
an uploaded file's bytes and its client-declared filename, accumulating a
human-readable threat string for every finding:

1. **size**         — content longer than ``max_file_size_bytes``
2. **extension**    — blocked extension, and (independently) extension outside
   the allow-list
3. **checksum**     — SHA-256 of the full content, always computed
4. **content**      — malicious text patterns in the leading window, an
   embedded ``MZ`` marker anywhere, and byte entropy above the threshold
5. **mime**         — detected magic-number type disagrees with the extension
6. **signatures**   — PE / ELF / Mach-O header at offset 0
7. **urls**         — more than ``max_url_count`` URLs in the text window

All checks always run, so one scan can report several findings.

**Fail-closed contract**: :meth:`FileSecurityScanner.scan` never raises for an
internal failure.  Any exception is converted into a result whose only threat
is ``"File scan error: <message>"`` with zeroed size and checksum.

Usage::

    from uploadguard.core.scanner import FileSecurityScanner

    scanner = FileSecurityScanner()
    result = scanner.scan(upload_bytes, "cv.pdf")
    print(result.is_safe, result.threats)

    # From an asyncio host, without blocking the event loop:
    result = await scanner.scan_async(upload_bytes, "cv.pdf")
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from uploadguard.core import filenames, heuristics
from uploadguard.core.scan_result import FileCategory, ScanDetails, ScanResult
from uploadguard.core.scanner_config import ScannerConfig
from uploadguard.core.signatures import EMBEDDED_EXECUTABLE_MARKER

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(
    "uploadguard.scanner",
    schema_url="https://opentelemetry.io/schemas/1.11.0",
)


class FileSecurityScanner:
    """Stateless file security scanner.

    The scanner holds only its immutable :class:`ScannerConfig` (and, once
    :meth:`scan_async` is first used, an owned thread pool), so one instance
    can serve concurrent scans from any number of threads.

    Args:
        config: Limits and signature tables.  Defaults to
            :meth:`ScannerConfig.from_settings`.
        max_workers: Thread pool size for :meth:`scan_async` and
            :meth:`scan_file_async`.  Defaults to
            ``settings.scan_max_workers``.
        executor: Pre-built executor for :meth:`scan_async` (useful for
            testing/injection).  When supplied, *max_workers* is ignored and
            the executor is never shut down by this scanner.
    """

    def __init__(
        self,
        config: ScannerConfig | None = None,
        *,
        max_workers: int | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._config = config if config is not None else ScannerConfig.from_settings()
        self._max_workers = max_workers
        self._executor = executor
        self._owns_executor = False
        self._executor_lock = threading.Lock()

    @property
    def config(self) -> ScannerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context-manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> FileSecurityScanner:
        return self

    def __exit__(self, *_: object) -> None:
        self.shutdown()

    def shutdown(self, *, wait: bool = True) -> None:
        """Shut down the owned thread pool, if one was created.

        Safe to call multiple times.  Does nothing if the executor was
        supplied externally.
        """
        with self._executor_lock:
            if not (self._owns_executor and self._executor is not None):
                return
            executor = self._executor
            self._executor = None
            self._owns_executor = False
        executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Scan entry points
    # ------------------------------------------------------------------

    def scan(self, data: bytes, declared_file_name: str) -> ScanResult:
        """Scan in-memory *data* uploaded as *declared_file_name*.

        Args:
            data: Full file content.
            declared_file_name: Filename supplied by the client; only its
                extension is used.

        Returns:
            A fresh :class:`ScanResult`.  Never raises for internal failures.
        """
        return self._run(declared_file_name, lambda: memoryview(data).tobytes())

    def scan_file(self, path: str | Path, declared_file_name: str) -> ScanResult:
        """Scan the file at *path* uploaded as *declared_file_name*.

        The caller owns *path* (including any temporary file lifecycle).  A
        missing or unreadable file yields a ``"File scan error: ..."`` result.
        """
        return self._run(declared_file_name, Path(path).read_bytes)

    async def scan_async(self, data: bytes, declared_file_name: str) -> ScanResult:
        """Run :meth:`scan` in the thread pool so the event loop is not blocked."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_executor(), self.scan, data, declared_file_name
        )

    async def scan_file_async(
        self, path: str | Path, declared_file_name: str
    ) -> ScanResult:
        """Run :meth:`scan_file` in the thread pool used by :meth:`scan_async`."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._get_executor(), self.scan_file, path, declared_file_name
        )

    # ------------------------------------------------------------------
    # Auxiliary checks
    # ------------------------------------------------------------------

    @staticmethod
    def sanitize_file_name(file_name: str) -> str:
        return filenames.sanitize_file_name(file_name)

    def is_allowed_extension(self, extension: str) -> bool:
        """Case-insensitive allow-list membership test for *extension*."""
        return extension.lower() in self._config.allowed_extensions

    def is_file_size_allowed(self, size: int) -> bool:
        return size <= self._config.max_file_size_bytes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                workers = self._max_workers
                if workers is None:
                    from uploadguard.config import get_settings

                    workers = get_settings().scan_max_workers
                self._executor = ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix="uploadguard-scan"
                )
                self._owns_executor = True
            return self._executor

    def _run(self, declared_file_name: str, read: Callable[[], bytes]) -> ScanResult:
        start = time.monotonic()

        with tracer.start_as_current_span("uploadguard.scan") as span:
            try:
                data = read()
                result = self._evaluate(data, declared_file_name, start)
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                logger.warning(
                    "File scan failed: file_name=%r error=%r", declared_file_name, exc
                )
                result = ScanResult(
                    is_safe=False,
                    file_type=FileCategory.UNKNOWN,
                    file_size_bytes=0,
                    checksum="",
                    threats=(f"File scan error: {exc}",),
                    scan_details=self._details(start),
                )

            span.set_attribute("scan.file_size_bytes", result.file_size_bytes)
            span.set_attribute("scan.file_type", result.file_type.value)
            span.set_attribute("scan.threat_count", len(result.threats))
            span.set_attribute("scan.duration_ms", result.scan_details.scan_duration_ms)

        logger.debug(
            "File scan complete: file_name=%r safe=%s threats=%d duration_ms=%d",
            declared_file_name,
            result.is_safe,
            len(result.threats),
            result.scan_details.scan_duration_ms,
        )
        return result

    def _evaluate(self, data: bytes, declared_file_name: str, start: float) -> ScanResult:
        cfg = self._config
        threats: list[str] = []
        extension = filenames.extract_extension(declared_file_name)

        if len(data) > cfg.max_file_size_bytes:
            threats.append(
                f"File size exceeds maximum allowed size ({cfg.max_file_size_mb:g}MB)"
            )

        if extension in cfg.blocked_extensions:
            threats.append(f"Dangerous file extension: {extension}")
        if extension not in cfg.allowed_extensions:
            threats.append(f"Unsupported file extension: {extension}")

        checksum = hashlib.sha256(data).hexdigest()
        text = heuristics.decode_text_window(data, cfg.content_window_bytes)

        self._check_content(data, text, threats)
        self._check_mime_type(data, extension, threats)
        self._check_heuristics(data, text, threats)

        return ScanResult(
            is_safe=not threats,
            file_type=cfg.file_categories.get(extension, FileCategory.UNKNOWN),
            file_size_bytes=len(data),
            checksum=checksum,
            threats=tuple(threats),
            scan_details=self._details(start),
        )

    def _check_content(self, data: bytes, text: str, threats: list[str]) -> None:
        for pattern in self._config.malicious_patterns:
            if pattern.regex.search(text):
                threats.append(f"Malicious pattern detected: {pattern.source}")

        if EMBEDDED_EXECUTABLE_MARKER in data:
            threats.append("Embedded executable detected")

        if heuristics.shannon_entropy(data) > self._config.entropy_threshold:
            threats.append("High entropy detected - possible packed/encrypted content")

    def _check_mime_type(self, data: bytes, extension: str, threats: list[str]) -> None:
        detected = heuristics.detect_mime_type(data, self._config.mime_signatures)
        if detected is None:
            return

        expected = self._config.expected_mime_types.get(extension, ())
        if detected not in expected:
            expected_desc = " or ".join(expected) if expected else "no known type"
            threats.append(f"MIME type mismatch: expected {expected_desc}, got {detected}")

    def _check_heuristics(self, data: bytes, text: str, threats: list[str]) -> None:
        for signature in heuristics.match_executable_signatures(
            data, self._config.executable_signatures
        ):
            threats.append(f"Suspicious file signature: {signature.description}")

        if heuristics.count_urls(text) > self._config.max_url_count:
            threats.append("High number of URLs detected - possible phishing attempt")

    def _details(self, start: float) -> ScanDetails:
        return ScanDetails(
            scanned_at=datetime.now(timezone.utc),
            scan_duration_ms=int((time.monotonic() - start) * 1000),
            engine_version=self._config.engine_version,
        )
