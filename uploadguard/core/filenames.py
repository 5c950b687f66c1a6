"""Filename helpers shared by the scanner and the upload screening service."""

from __future__ import annotations

import os
import re

MAX_FILE_NAME_LENGTH = 255

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9.-]")
_DOT_RUN_RE = re.compile(r"\.{2,}")


def _underscores(match: re.Match[str]) -> str:
    # One underscore per UTF-16 code unit, so astral characters take two.
    return "__" if ord(match.group()) > 0xFFFF else "_"


def sanitize_file_name(file_name: str) -> str:
    """Return a storage-safe version of a client-supplied filename.

    Every character outside ``[A-Za-z0-9.-]`` becomes ``_``, runs of two or
    more dots collapse to one, a single leading dot is stripped, and the
    result is truncated to 255 characters.  Empty input yields ``""``.

    Lengths follow UTF-16 code units as browsers report them: a character
    outside the Basic Multilingual Plane (an emoji, say) becomes ``__``.
    The output is pure ASCII, so the truncation also counts code units.

    Example::

        >>> sanitize_file_name("../../evil<script>.exe")
        '_._evil_script_.exe'
    """
    if not file_name:
        return ""

    name = _UNSAFE_CHARS_RE.sub(_underscores, file_name)
    name = _DOT_RUN_RE.sub(".", name)
    if name.startswith("."):
        name = name[1:]
    return name[:MAX_FILE_NAME_LENGTH]


def extract_extension(file_name: str) -> str:
    """Return the lowercase extension of *file_name* including the dot.

    Returns ``""`` when the name has no extension or is a bare dotfile
    (``".env"``).
    """
    return os.path.splitext(file_name or "")[1].lower()
