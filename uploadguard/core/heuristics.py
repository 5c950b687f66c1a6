"""Byte-level heuristics used by the file security scanner.

All functions are pure and stateless; they are safe to call concurrently.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import Iterable, Sequence

from uploadguard.core.signatures import ExecutableSignature, MagicSignature

_URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)


def shannon_entropy(data: bytes) -> float:
    """Return the Shannon entropy of *data* in bits per byte (0.0 – 8.0).

    Empty input has an entropy of ``0.0``.
    """
    length = len(data)
    if length == 0:
        return 0.0

    entropy = 0.0
    for count in Counter(data).values():
        p = count / length
        entropy -= p * math.log2(p)
    return entropy


def decode_text_window(data: bytes, window_bytes: int) -> str:
    """Decode the first *window_bytes* of *data* as UTF-8, replacing bad sequences."""
    return data[:window_bytes].decode("utf-8", errors="replace")


def detect_mime_type(data: bytes, signatures: Sequence[MagicSignature]) -> str | None:
    """Return the MIME type of the first signature *data* starts with, else ``None``."""
    for signature in signatures:
        if data.startswith(signature.magic):
            return signature.mime_type
    return None


def match_executable_signatures(
    data: bytes, signatures: Iterable[ExecutableSignature]
) -> list[ExecutableSignature]:
    """Return every executable signature found at offset 0 of *data*."""
    return [sig for sig in signatures if data.startswith(sig.magic)]


def count_urls(text: str) -> int:
    """Count ``http://`` / ``https://`` URLs in *text*."""
    return sum(1 for _ in _URL_RE.finditer(text))
