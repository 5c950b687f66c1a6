"""Root logging setup for processes embedding UploadGuard."""
from __future__ import annotations

import logging

from uploadguard.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once, at *level* or ``settings.log_level``.

    Repeated calls only adjust the level; handlers already installed by the
    host application are left in place.
    """
    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
