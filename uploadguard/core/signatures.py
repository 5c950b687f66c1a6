"""Built-in signature and pattern tables for the UploadGuard scanner.

This module is pure data plus one loader.  It defines:

* the malicious content patterns tested against the decoded text window,
* the magic-number table used to detect a file's true MIME type,
* the executable signatures checked at offset 0,
* the extension → expected MIME type and extension → category maps.

Every table is immutable (tuples, frozen dataclasses, read-only mappings) and
is injected into the scanner through
:class:`~uploadguard.core.scanner_config.ScannerConfig`, so a deployment can
override any of them without touching scan logic.

Additional content patterns can be supplied via a JSON config file (see
:func:`load_patterns`).  Custom patterns are appended after the built-ins and
compiled on load; no regex compilation occurs at scan time.

**JSON config format** (array of objects at the root):

.. code-block:: json

    [
        {"pattern": "<iframe"},
        {"pattern": "data:text/html"}
    ]
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from uploadguard.core.scan_result import FileCategory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternEntry:
    """A pre-compiled, case-insensitive malicious content pattern.

    Attributes:
        regex: Compiled pattern.  ``regex.pattern`` is the source string
            reported in threat messages.
    """

    regex: re.Pattern[str]

    @property
    def source(self) -> str:
        return self.regex.pattern


@dataclass(frozen=True)
class MagicSignature:
    """Leading-byte signature identifying a MIME type."""

    mime_type: str
    magic: bytes


@dataclass(frozen=True)
class ExecutableSignature:
    """Leading-byte signature of a native executable format."""

    description: str
    magic: bytes


# ---------------------------------------------------------------------------
# Built-in tables
# ---------------------------------------------------------------------------

_BUILTIN_PATTERN_SOURCES: tuple[str, ...] = (
    r"<script",
    r"javascript:",
    r"vbscript:",
    r"onload=",
    r"onerror=",
    r"eval\(",
    r"document\.write",
    r"window\.location",
)

BUILTIN_PATTERNS: tuple[PatternEntry, ...] = tuple(
    PatternEntry(regex=re.compile(src, re.IGNORECASE))
    for src in _BUILTIN_PATTERN_SOURCES
)

# Checked in order; the first prefix match wins.
MIME_SIGNATURES: tuple[MagicSignature, ...] = (
    MagicSignature("application/pdf", bytes([0x25, 0x50, 0x44, 0x46])),
    MagicSignature("image/jpeg", bytes([0xFF, 0xD8, 0xFF])),
    MagicSignature("image/png", bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A])),
    MagicSignature("application/zip", bytes([0x50, 0x4B, 0x03, 0x04])),
    MagicSignature("application/msword", bytes([0xD0, 0xCF, 0x11, 0xE0, 0xA1, 0xB1, 0x1A, 0xE1])),
)

EXECUTABLE_SIGNATURES: tuple[ExecutableSignature, ...] = (
    ExecutableSignature("PE Executable signature", bytes([0x4D, 0x5A])),
    ExecutableSignature("ELF Executable signature", bytes([0x7F, 0x45, 0x4C, 0x46])),
    ExecutableSignature("Mach-O Executable signature", bytes([0xFE, 0xED, 0xFA, 0xCE])),
)

# Windows PE "MZ" header, searched anywhere in the buffer.
EMBEDDED_EXECUTABLE_MARKER = bytes([0x4D, 0x5A])

_DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# .docx files are ZIP containers, so the ZIP signature is expected for them too.
EXPECTED_MIME_TYPES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    ".pdf": ("application/pdf",),
    ".jpg": ("image/jpeg",),
    ".jpeg": ("image/jpeg",),
    ".png": ("image/png",),
    ".gif": ("image/gif",),
    ".txt": ("text/plain",),
    ".doc": ("application/msword",),
    ".docx": (_DOCX_MIME, "application/zip"),
    ".zip": ("application/zip",),
})

FILE_CATEGORIES: Mapping[str, FileCategory] = MappingProxyType({
    ".pdf": FileCategory.DOCUMENT,
    ".doc": FileCategory.DOCUMENT,
    ".docx": FileCategory.DOCUMENT,
    ".txt": FileCategory.DOCUMENT,
    ".rtf": FileCategory.DOCUMENT,
    ".jpg": FileCategory.IMAGE,
    ".jpeg": FileCategory.IMAGE,
    ".png": FileCategory.IMAGE,
    ".gif": FileCategory.IMAGE,
    ".webp": FileCategory.IMAGE,
    ".zip": FileCategory.ARCHIVE,
    ".rar": FileCategory.ARCHIVE,
})


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_patterns(custom_config_path: str | Path | None = None) -> tuple[PatternEntry, ...]:
    """Return the built-in patterns, optionally extended from a JSON file.

    Args:
        custom_config_path: Path to a JSON array of ``{"pattern": "..."}``
            objects.  ``None`` returns the built-in set only.

    Returns:
        Built-in patterns first, then valid custom patterns in file order.

    Note:
        This function never raises.  Filesystem, JSON and regex errors are
        logged and the offending file or entry is skipped, so a broken config
        file cannot prevent the scanner from starting.
    """
    patterns: list[PatternEntry] = list(BUILTIN_PATTERNS)

    if custom_config_path is None:
        return tuple(patterns)

    path = Path(custom_config_path)

    if not path.exists():
        logger.warning(
            "Custom content pattern config not found: %s; using built-in patterns only",
            path,
        )
        return tuple(patterns)

    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.error("Cannot read custom content pattern config %s: %s", path, exc)
        return tuple(patterns)
    except json.JSONDecodeError as exc:
        logger.error("Invalid JSON in custom content pattern config %s: %s", path, exc)
        return tuple(patterns)

    if not isinstance(entries, list):
        logger.error(
            "Custom content pattern config %s must contain a JSON array at the root (got %s)",
            path,
            type(entries).__name__,
        )
        return tuple(patterns)

    known = {p.source for p in patterns}
    loaded = 0

    for i, entry in enumerate(entries):
        raw = entry.get("pattern") if isinstance(entry, dict) else None
        if not raw or not isinstance(raw, str):
            logger.warning(
                "Custom content pattern at index %d has no valid 'pattern'; skipping", i
            )
            continue
        if raw in known:
            logger.warning("Custom content pattern %r duplicates an existing pattern; skipping", raw)
            continue
        try:
            compiled = re.compile(raw, re.IGNORECASE)
        except re.error as exc:
            logger.error(
                "Custom content pattern %r at index %d is not a valid regex: %s; skipping",
                raw,
                i,
                exc,
            )
            continue

        patterns.append(PatternEntry(regex=compiled))
        known.add(raw)
        loaded += 1

    logger.info(
        "Loaded %d custom content pattern(s) from %s (total patterns: %d)",
        loaded,
        path,
        len(patterns),
    )
    return tuple(patterns)
