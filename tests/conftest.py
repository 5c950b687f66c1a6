"""Shared pytest configuration and fixtures for UploadGuard tests.

Sets environment variables before any uploadguard module reads settings, and
clears the cached settings around every test so ``monkeypatch.setenv`` changes
are picked up.
"""
from __future__ import annotations

import os

import pytest

os.environ.setdefault("UPLOADGUARD_AUDIT_SECRET_KEY", "test-audit-secret-key-at-least-32-chars!!")
os.environ.setdefault("UPLOADGUARD_ENVIRONMENT", "test")

from uploadguard.config import get_settings  # noqa: E402
from uploadguard.core.scanner import FileSecurityScanner  # noqa: E402
from uploadguard.core.scanner_config import ScannerConfig  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scanner():
    """Scanner with the production default limits and tables."""
    with FileSecurityScanner(ScannerConfig(), max_workers=2) as s:
        yield s
