"""Process-wide logging configuration.

Console output always; ``error.log`` and ``combined.log`` are added when a
log directory is configured. Structured context is passed through
``extra={"ctx": {...}}`` and rendered after the message.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

SERVICE_NAME = "token-board"
_FORMAT = "[%(asctime)s] %(levelname)s [%(service)s] %(name)s: %(message)s%(ctx_suffix)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


class _ContextFormatter(logging.Formatter):
    """Formatter that renders the ``ctx`` extra as a compact JSON suffix."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = getattr(record, "ctx", None)
        record.ctx_suffix = f" {json.dumps(ctx, default=str, sort_keys=True)}" if ctx else ""  # type: ignore[attr-defined]
        record.service = SERVICE_NAME  # type: ignore[attr-defined]
        return super().format(record)


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once and return it."""
    global _configured

    root = logging.getLogger()
    if _configured:
        return root

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = _ContextFormatter(_FORMAT, datefmt=_DATE_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        error_handler = logging.FileHandler(path / "error.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        combined_handler = logging.FileHandler(path / "combined.log", encoding="utf-8")
        combined_handler.setFormatter(formatter)
        root.addHandler(error_handler)
        root.addHandler(combined_handler)

    # engine echo goes through DbConn(echo=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
    return root
