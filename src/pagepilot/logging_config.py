"""
Structured Logging for PagePilot

Every capability invocation and LLM call is traced as one JSON line in
~/.pagepilot/logs/pagepilot.log. The terminal stays clean for the agent's
own output unless --verbose, which mirrors INFO+ through rich.

API keys never reach a log line: messages and tracebacks are redacted.
"""

import json
import logging
import logging.handlers
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from pagepilot.router import redact_api_keys

LOG_FILE_NAME = "pagepilot.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# `extra=` keys copied into the JSON line when present
_EXTRA_FIELDS = ("capability", "outcome_kind", "provider")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with capability/provider context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_api_keys(record.getMessage()),
        }

        if record.exc_info:
            log_data["exception"] = redact_api_keys(self.formatException(record.exc_info))

        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        return json.dumps(log_data, ensure_ascii=False)


class RedactingFilter(logging.Filter):
    """Scrub API keys from console output (the JSON file is scrubbed by its formatter)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_api_keys(record.getMessage())
        record.args = None
        return True


def _file_handler(log_dir: Path) -> logging.Handler | None:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JSONFormatter())
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(verbose: bool = False, log_dir: Path | None = None) -> logging.Logger:
    """
    Setup structured logging for PagePilot.

    Args:
        verbose: Mirror INFO+ to stderr (for --verbose)
        log_dir: Override for the log directory (default ~/.pagepilot/logs)

    Returns:
        The "pagepilot" logger every module logger hangs off
    """
    log_dir = log_dir or Path.home() / ".pagepilot" / "logs"
    root_logger = logging.getLogger("pagepilot")
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    file_handler = _file_handler(log_dir)
    if file_handler is None:
        # No writable log dir: warnings still reach the terminal
        root_logger.setLevel(logging.INFO if verbose else logging.WARNING)
        root_logger.addHandler(_console_handler(logging.INFO if verbose else logging.WARNING))
        root_logger.warning(f"Could not open a log file in {log_dir}, logging to stderr only")
        return root_logger

    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    if verbose:
        root_logger.addHandler(_console_handler(logging.INFO))

    root_logger.info(f"PagePilot logging initialized ({log_dir / LOG_FILE_NAME})")
    return root_logger
