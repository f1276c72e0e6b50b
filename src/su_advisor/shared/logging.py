"""
Logging Module - Rich console and file logging for the advisor.
===============================================================

Every module logs through ``get_logger(__name__)``. The first call installs
a default Rich console handler; ``setup_logging_from_settings()`` (called by
the CLI and the API server) reinstalls handlers from the ``logging`` section
of the settings.

Pipeline state transitions of the gateway are logged at DEBUG level under
``su_advisor.rag.gateway``; ``LogContext`` raises one logger's level for a
block without touching the rest.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Loggers of HTTP clients and backends that log every request at INFO/DEBUG
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "chromadb",
    "google_genai",
    "uvicorn.access",
)

_console = Console(stderr=True)
_configured = False


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


def _console_handler(use_rich: bool, log_format: str) -> logging.Handler:
    if not use_rich:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
        return handler

    # Answers contain brackets, so Rich markup stays off
    handler = RichHandler(
        console=_console,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(log_file: str, log_format: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(log_format))
    return handler


# ─────────────────────────────────────────────────────────────────────────────
# Setup
# ─────────────────────────────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    use_rich: bool = True,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Install handlers on the root logger.

    Args:
        level: Log level name; unknown names mean INFO
        use_rich: Rich console handler instead of a plain stream handler
        log_file: Also write to this file (parent directories are created)
        log_format: Format for plain and file handlers
        force: Replace handlers installed by an earlier call
    """
    global _configured

    if _configured and not force:
        return

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    log_format = log_format or DEFAULT_FORMAT

    handlers = [_console_handler(use_rich, log_format)]
    if log_file:
        handlers.append(_file_handler(log_file, log_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).debug(
        f"Logging ready: level={logging.getLevelName(numeric_level)}, "
        f"rich={use_rich}, file={log_file or '-'}"
    )


def setup_logging_from_settings() -> None:
    """Reinstall handlers from the ``logging`` settings section."""
    from su_advisor.shared.config import get_settings

    settings = get_settings()
    setup_logging(
        level=settings.get_effective_log_level(),
        use_rich=settings.logging.rich_console,
        log_file=settings.logging.file or None,
        log_format=settings.logging.format,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a module logger, installing default handlers on first use."""
    if not _configured:
        setup_logging()
    return logging.getLogger(name)


class LogContext:
    """
    Temporarily set the level of one logger (the root logger if no name).

    Example:
        >>> with LogContext("DEBUG", "su_advisor.rag.gateway"):
        ...     ...  # pipeline state transitions are logged here
    """

    def __init__(self, level: str, logger_name: Optional[str] = None):
        self.level = logging.getLevelName(level.upper())
        if not isinstance(self.level, int):
            self.level = logging.DEBUG
        self.logger_name = logger_name
        self._saved: list[tuple] = []

    def __enter__(self) -> "LogContext":
        logger = logging.getLogger(self.logger_name)
        self._saved = [(logger, logger.level)]
        logger.setLevel(self.level)
        # Root handlers filter by level too
        for handler in logging.getLogger().handlers:
            if handler.level > self.level:
                self._saved.append((handler, handler.level))
                handler.setLevel(self.level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        for target, level in reversed(self._saved):
            target.setLevel(level)
        self._saved = []
