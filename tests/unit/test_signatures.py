"""Unit tests for uploadguard/core/signatures.py (tables and custom pattern loading)."""
from __future__ import annotations

import json
import logging

import pytest

from uploadguard.core.scan_result import FileCategory
from uploadguard.core.signatures import (
    BUILTIN_PATTERNS,
    EXPECTED_MIME_TYPES,
    FILE_CATEGORIES,
    load_patterns,
)


class TestBuiltinTables:
    def test_eight_builtin_patterns_in_order(self) -> None:
        assert [p.source for p in BUILTIN_PATTERNS] == [
            "<script",
            "javascript:",
            "vbscript:",
            "onload=",
            "onerror=",
            r"eval\(",
            r"document\.write",
            r"window\.location",
        ]

    def test_tables_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            FILE_CATEGORIES[".exe"] = FileCategory.DOCUMENT  # type: ignore[index]
        with pytest.raises(TypeError):
            EXPECTED_MIME_TYPES[".exe"] = ("application/x-msdownload",)  # type: ignore[index]

    def test_pattern_entries_are_immutable(self) -> None:
        with pytest.raises((AttributeError, TypeError)):
            BUILTIN_PATTERNS[0].regex = None  # type: ignore[misc]


class TestLoadPatterns:
    def test_no_path_returns_builtins(self) -> None:
        assert load_patterns() == BUILTIN_PATTERNS

    def test_missing_file_returns_builtins(self, tmp_path, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            patterns = load_patterns(tmp_path / "missing.json")
        assert patterns == BUILTIN_PATTERNS
        assert "not found" in caplog.text

    def test_valid_entries_are_appended(self, tmp_path) -> None:
        path = tmp_path / "patterns.json"
        path.write_text(json.dumps([{"pattern": "<iframe"}, {"pattern": "data:text/html"}]))
        patterns = load_patterns(path)
        assert len(patterns) == len(BUILTIN_PATTERNS) + 2
        assert [p.source for p in patterns[-2:]] == ["<iframe", "data:text/html"]
        assert patterns[-1].regex.search("DATA:TEXT/HTML,hi")

    def test_invalid_json_returns_builtins(self, tmp_path) -> None:
        path = tmp_path / "patterns.json"
        path.write_text("{not json")
        assert load_patterns(path) == BUILTIN_PATTERNS

    def test_non_array_root_returns_builtins(self, tmp_path) -> None:
        path = tmp_path / "patterns.json"
        path.write_text(json.dumps({"pattern": "<iframe"}))
        assert load_patterns(path) == BUILTIN_PATTERNS

    def test_bad_entries_are_skipped(self, tmp_path) -> None:
        path = tmp_path / "patterns.json"
        path.write_text(
            json.dumps([
                "not-an-object",
                {"name": "missing pattern"},
                {"pattern": "(unclosed"},
                {"pattern": "<script"},
                {"pattern": "<object"},
            ])
        )
        patterns = load_patterns(path)
        assert [p.source for p in patterns[len(BUILTIN_PATTERNS):]] == ["<object"]
