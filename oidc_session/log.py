"""Logging for oidc-session.

Modules log through children of the ``oidc_session`` logger
(``oidc_session.bootstrap``, ``oidc_session.renewal``, ...), so one level and
one handler cover the whole package. Authorization URLs and token endpoint
payloads carry codes and tokens; pass them through :func:`redact_url` or
:func:`redact_sensitive_data` before logging.
"""

from __future__ import annotations

import logging
import sys

from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


PACKAGE_LOGGER = "oidc_session"
DEFAULT_FORMAT = "%(name)s - %(levelname)s - %(message)s"
REDACTED = "[REDACTED]"

# Substrings of key / query parameter names whose values are never logged.
_SENSITIVE_PARTS = (
    "token",
    "code",
    "secret",
    "verifier",
    "password",
    "session_state",
    "nonce",
)


@lru_cache(maxsize=1)
def get_logger() -> logging.Logger:
    """Return the package logger.

    On first use the level is set to WARNING and, unless the host
    application already attached one, a stderr handler is added.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(handler)
    return logger


def set_level(level: int | str) -> None:
    """Set the package log level; level names are case-insensitive."""
    get_logger().setLevel(level.upper() if isinstance(level, str) else level)


def configure(level: int | str, fmt: str | None = None) -> None:
    """Apply a level and, optionally, a format to the package logger.

    Parameters
    ----------
    level : int or str
        The logging level.
    fmt : str, optional
        A ``logging.Formatter`` format string for the package handlers.
    """
    set_level(level)
    if fmt:
        for handler in get_logger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


def enable_debug() -> None:
    """Log every bootstrap decision, silent SSO message and renewal."""
    set_level(logging.DEBUG)


def _is_sensitive(key: object) -> bool:
    name = str(key).lower()
    return any(part in name for part in _SENSITIVE_PARTS)


def redact_sensitive_data(data: Any, max_depth: int = 5) -> Any:
    """Copy ``data`` with the values of token-like keys replaced.

    Parameters
    ----------
    data : Any
        Typically a token endpoint response. Dicts and lists are walked,
        anything else is returned as is.
    max_depth : int
        Nesting levels to walk; deeper values become ``"[MAX_DEPTH]"``.

    Returns
    -------
    Any
        The redacted copy.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"
    if isinstance(data, dict):
        return {
            k: REDACTED if _is_sensitive(k) else redact_sensitive_data(v, max_depth - 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]
    return data


def redact_url(url: str) -> str:
    """Return ``url`` with the values of token-like query parameters replaced."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    pairs = [
        (k, REDACTED if _is_sensitive(k) else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(pairs, safe="[]")))
