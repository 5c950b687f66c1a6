"""UploadGuard core scanning components.

This package contains the immutable scan result types, the signature and
pattern tables, the byte-level heuristics, and the
:class:`~uploadguard.core.scanner.FileSecurityScanner` that combines them
into a single verdict per uploaded file.
"""

from uploadguard.core.scan_result import FileCategory, ScanDetails, ScanResult
from uploadguard.core.scanner import FileSecurityScanner
from uploadguard.core.scanner_config import ScannerConfig

__all__ = [
    "FileCategory",
    "FileSecurityScanner",
    "ScanDetails",
    "ScanResult",
    "ScannerConfig",
]
