"""
Centralized Logging

Architectural Intent:
- Diagnostic logging for taskbot-deploy on stderr, separate from the
  operator-facing progress lines the CLI prints on stdout
- Human output reuses the CLI's markers ([*] info, [!] warning, [-] error)
  so both streams read alike in one terminal
- JSON output carries the provisioning phase and compose service when a
  log call supplies them through `extra`
- Level comes from --verbose/--debug, else from the configured log_level
"""

import json
import logging
import sys
from datetime import datetime, UTC

LOGGER_NAME = "taskbot_deploy"

# LogRecord attributes copied into JSON output when present
CONTEXT_FIELDS = ("phase", "service")

MARKERS = {
    logging.DEBUG: "[.]",
    logging.INFO: "[*]",
    logging.WARNING: "[!]",
    logging.ERROR: "[-]",
    logging.CRITICAL: "[-]",
}


class ConsoleFormatter(logging.Formatter):
    """`[*] message` lines; debug lines also name the emitting module."""

    def format(self, record: logging.LogRecord) -> str:
        marker = MARKERS.get(record.levelno, "[*]")
        message = record.getMessage()
        if record.levelno <= logging.DEBUG:
            module = record.name.removeprefix(f"{LOGGER_NAME}.")
            message = f"{module}: {message}"
        line = f"{marker} {message}"
        if record.exc_info and record.exc_info[1]:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(
    level: int = logging.WARNING,
    json_format: bool = False,
) -> None:
    """Configure the taskbot_deploy logger tree.

    Safe to call again: the previous handler is replaced, so the CLI can
    reconfigure once the tool config has been loaded.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, one JSON object per line. Otherwise ConsoleFormatter.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    root.addHandler(handler)
