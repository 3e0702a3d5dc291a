from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any

import structlog

_LOGGING_CONFIGURED = False
_HANDLER: logging.Handler | None = None

_URL_CREDENTIALS_RE = re.compile(r"https?://[^@\s/]+@", re.IGNORECASE)
_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9._\-]+", re.IGNORECASE)
_GITHUB_TOKEN_RE = re.compile(r"gh[pousr]_[A-Za-z0-9_\-]{36,}")
_QUERY_TOKEN_RE = re.compile(r"(access_token|token)=([A-Za-z0-9_\-.]{20,})", re.IGNORECASE)


def setup_logging(
    filename: str | Path | None = None, level: str | int = logging.INFO
) -> Any:
    """Set up structured logging for codedigest.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level passed through the structlog filter.

    Returns:
        A structlog logger bound to the ``codedigest`` name.
    """
    global _LOGGING_CONFIGURED, _HANDLER  # noqa: PLW0603
    numeric = logging.getLevelName(level) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        numeric = logging.INFO
    handler: logging.Handler
    if filename:
        handler = logging.FileHandler(str(filename), encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("codedigest")
    if _HANDLER is not None:
        root.removeHandler(_HANDLER)
        _HANDLER.close()
    root.addHandler(handler)
    _HANDLER = handler
    root.setLevel(numeric)
    root.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _LOGGING_CONFIGURED = True

    return structlog.get_logger("codedigest")


def get_logger(name: str = "codedigest") -> Any:
    if not _LOGGING_CONFIGURED:
        setup_logging()
    return structlog.get_logger(name)


def scrub_tokens(message: str) -> str:
    """Mask credentials that commonly leak into log lines."""
    if not message:
        return message
    out = _URL_CREDENTIALS_RE.sub("https://[REDACTED]@", message)
    out = _BEARER_RE.sub("Bearer [REDACTED]", out)
    out = _GITHUB_TOKEN_RE.sub("[REDACTED_GITHUB_TOKEN]", out)
    return _QUERY_TOKEN_RE.sub(lambda m: f"{m.group(1)}=[REDACTED]", out)


class Diagnostics:
    """Collects non-fatal warnings for one digest run and forwards them to the log."""

    def __init__(self, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else get_logger("codedigest")
        self._warnings: list[str] = []
        self._seen: set[str] = set()

    def warn(self, event: str, message: str, **fields: Any) -> None:
        text = scrub_tokens(message)
        self._logger.warning(event, message=text, **fields)
        if text in self._seen:
            return
        self._seen.add(text)
        self._warnings.append(text)

    def debug(self, event: str, **fields: Any) -> None:
        self._logger.debug(event, **fields)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)
