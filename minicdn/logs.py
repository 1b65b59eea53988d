"""Logging setup driven by a `target=level` filter string."""

import logging
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 1,
}


def parse_log_filter(spec: str) -> Dict[Optional[str], int]:
    """
    Parse a filter such as ``"minicdn=info,uvicorn=warning"``.

    A directive without ``=`` sets the root level and is returned under
    the ``None`` key.

    Raises:
        ValueError: if a directive names an unknown level.
    """
    levels: Dict[Optional[str], int] = {}
    for directive in spec.split(","):
        directive = directive.strip()
        if not directive:
            continue
        target, sep, level = directive.rpartition("=")
        name = level.strip().lower()
        if name not in _LEVELS:
            raise ValueError(f"Unknown log level {level!r} in filter {spec!r}")
        levels[target.strip() if sep else None] = _LEVELS[name]
    return levels


def configure_logging(spec: str) -> None:
    """Send log records to stderr and apply per-logger levels from ``spec``."""
    levels = parse_log_filter(spec)
    logging.basicConfig(level=levels.pop(None, logging.WARNING), format=LOG_FORMAT)
    for target, level in levels.items():
        logging.getLogger(target).setLevel(level)
