from __future__ import annotations

import os
from copy import copy, deepcopy
from typing import Any
from urllib.parse import unquote

from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter as UvicornAccessFormatter

__all__ = [
    "Utf8AccessFormatter",
    "build_uvicorn_log_config",
    "debug_enabled",
    "debug_log",
    "set_debug_logging",
]

_DEBUG_LOG = os.environ.get("FUNFIC_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_enabled() -> bool:
    return _DEBUG_LOG


def debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[funfic debug] {message}")


class Utf8AccessFormatter(UvicornAccessFormatter):
    """Access log formatter that shows work slugs as text instead of %-escapes."""

    def formatMessage(self, record):  # type: ignore[override]
        args = record.args
        if not isinstance(args, tuple) or len(args) != 5:
            return super().formatMessage(record)
        client_addr, method, full_path, http_version, status_code = args
        if isinstance(full_path, str):
            full_path = unquote(full_path, encoding="utf-8", errors="replace")
        decoded = copy(record)
        decoded.args = (client_addr, method, full_path, http_version, status_code)
        return super().formatMessage(decoded)


def build_uvicorn_log_config(*, debug: bool | None = None) -> dict[str, Any]:
    config = deepcopy(LOGGING_CONFIG)
    formatter = config.get("formatters", {}).get("access")
    if isinstance(formatter, dict):
        formatter["()"] = "funfic.logging_utils.Utf8AccessFormatter"
    enabled = _DEBUG_LOG if debug is None else debug
    if enabled:
        for logger in config.get("loggers", {}).values():
            if isinstance(logger, dict) and "level" in logger:
                logger["level"] = "DEBUG"
    return config
