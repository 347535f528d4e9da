"""Process-wide logging setup for the QuickHand API."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = ["setup_logging"]

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _to_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _has_file_handler(root: logging.Logger, candidate: Path) -> bool:
    return any(
        isinstance(handler, logging.FileHandler)
        and Path(getattr(handler, "baseFilename", "")).resolve() == candidate
        for handler in root.handlers
    )


def setup_logging(level: str | None = None, log_path: str | None = None) -> Path | None:
    """Configure the root logger once.

    Console output is always attached when the root logger has no handlers yet.
    When ``log_path`` is given a shared file handler is added as well, and the
    resolved path is returned so callers can surface it.
    """

    resolved_level = _to_level(level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved_level, format=_FORMAT)
    if root.level == logging.NOTSET or root.level > resolved_level:
        root.setLevel(resolved_level)

    if not log_path:
        return None

    path = Path(log_path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    if not _has_file_handler(root, path):
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(file_handler)
    return path
