"""Runtime configuration for the credential debugger."""
from __future__ import annotations

import logging
import os
from typing import Optional

__all__ = [
    "ANNOTATE_ACTIONS",
    "JSON_INDENT",
    "LOG_FORMAT",
    "LOG_LEVEL",
    "OUTPUT_DIR",
    "PEM_SEPARATOR",
    "configure_logging",
]


def _env_flag(name: str) -> Optional[bool]:
    """Return ``True`` or ``False`` when the named env var is explicitly set."""

    raw_value = os.environ.get(name)
    if raw_value is None:
        return None

    normalised = raw_value.strip().lower()
    if normalised in {"", "0", "false", "off", "no"}:
        return False
    return True


def _env_int(name: str, default: int) -> int:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value.strip())
    except ValueError:
        return default


def _parse_separator(raw_value: Optional[str]) -> str:
    """Map escaped line ending names to the characters they stand for."""

    if raw_value is None:
        return "\r\n"
    aliases = {"crlf": "\r\n", "lf": "\n", "\\r\\n": "\r\n", "\\n": "\n"}
    return aliases.get(raw_value.strip().lower(), raw_value)


LOG_LEVEL = os.environ.get("CREDENTIAL_DEBUGGER_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

JSON_INDENT = max(_env_int("CREDENTIAL_DEBUGGER_JSON_INDENT", 2), 0)

# Joins the PEM blocks of a downloaded certificate chain.
PEM_SEPARATOR = _parse_separator(os.environ.get("CREDENTIAL_DEBUGGER_PEM_SEPARATOR"))

OUTPUT_DIR = os.environ.get("CREDENTIAL_DEBUGGER_OUTPUT_DIR") or os.getcwd()

_annotate_flag = _env_flag("CREDENTIAL_DEBUGGER_ANNOTATE")
ANNOTATE_ACTIONS = True if _annotate_flag is None else _annotate_flag


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure process-wide logging for command line execution."""

    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logger = logging.getLogger("credential_debugger")
    logger.setLevel(resolved)
    return logger
