"""
Plugins Manager Logging.

This module provides the logging capability injected into every component.

Key features:
- Explicit Severity enumeration (info, success, warning, error)
- Coded records: every entry has a stable code such as "add.start"
- In-memory history per logger instance, queryable by severity
- Output sinks are plain logging handlers with a BasicFormatter or JsonFormatter
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, TextIO

LOGGER_NAME = "plugpm"

_CONSOLE_HANDLER = "plugpm.console"


class Severity(IntEnum):
    """Severity of a log record, mapped onto stdlib logging levels."""

    INFO = logging.INFO
    SUCCESS = 25
    WARNING = logging.WARNING
    ERROR = logging.ERROR


logging.addLevelName(Severity.SUCCESS, "SUCCESS")

# Library default: silent unless the application configures a handler
logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


@dataclass(frozen=True)
class LogEntry:
    """
    A single coded log entry.

    Attributes:
        severity: Entry severity
        code: Stable machine-readable code (e.g. "remove.nothingToRemove")
        message: Human-readable message
        context: Extra key/value context (plugin key, constraint, paths...)
    """

    severity: Severity
    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class PluginsLogger:
    """
    Injectable logger for plugins manager components.

    Each instance keeps the history of what it logged so a caller can inspect
    the warnings and errors of a session. Records are forwarded to a stdlib
    logger, which decides where (and whether) they are printed.
    """

    def __init__(self, name: str = LOGGER_NAME, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(name)
        self._entries: list[LogEntry] = []

    def log(
        self, severity: Severity, code: str, message: str, **context: Any
    ) -> LogEntry:
        """
        Record and emit a log entry.

        Args:
            severity: Entry severity
            code: Stable entry code
            message: Human-readable message
            **context: Extra context values

        Returns:
            The recorded LogEntry
        """
        entry = LogEntry(severity=severity, code=code, message=message, context=context)
        self._entries.append(entry)
        self._logger.log(
            int(severity), message, extra={"code": code, "context": context}
        )
        return entry

    def info(self, code: str, message: str, **context: Any) -> LogEntry:
        return self.log(Severity.INFO, code, message, **context)

    def success(self, code: str, message: str, **context: Any) -> LogEntry:
        return self.log(Severity.SUCCESS, code, message, **context)

    def warning(self, code: str, message: str, **context: Any) -> LogEntry:
        return self.log(Severity.WARNING, code, message, **context)

    def error(self, code: str, message: str, **context: Any) -> LogEntry:
        return self.log(Severity.ERROR, code, message, **context)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def by_severity(self, severity: Severity) -> list[LogEntry]:
        return [entry for entry in self._entries if entry.severity == severity]

    @property
    def errors(self) -> list[LogEntry]:
        return self.by_severity(Severity.ERROR)

    @property
    def warnings(self) -> list[LogEntry]:
        return self.by_severity(Severity.WARNING)

    def codes(self) -> list[str]:
        """Codes of all recorded entries, in order."""
        return [entry.code for entry in self._entries]


class BasicFormatter(logging.Formatter):
    """Human-readable sink format: ``SEVERITY code: message {context}``."""

    def format(self, record: logging.LogRecord) -> str:
        code = getattr(record, "code", record.name)
        context = getattr(record, "context", None)
        line = f"{record.levelname} {code}: {record.getMessage()}"
        if context:
            line += " " + json.dumps(context, ensure_ascii=False, default=str)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """Structured sink format: one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname.lower(),
            "code": getattr(record, "code", record.name),
            "message": record.getMessage(),
            "context": getattr(record, "context", {}),
        }
        return json.dumps(payload, ensure_ascii=False, default=str)


FORMATTERS: dict[str, type[logging.Formatter]] = {
    "basic": BasicFormatter,
    "json": JsonFormatter,
}


def configure_logging(
    level: str = "info", fmt: str = "basic", stream: TextIO | None = None
) -> logging.Handler:
    """
    Attach a console sink to the plugpm logger.

    Args:
        level: Minimum severity name (info, success, warning, error)
        fmt: Sink format name (basic, json)
        stream: Output stream (default: stderr)

    Returns:
        The installed handler

    Raises:
        ValueError: If level or format is unknown
    """
    try:
        severity = Severity[level.upper()]
    except KeyError as e:
        raise ValueError(f"Unknown log level: {level}") from e

    if fmt not in FORMATTERS:
        raise ValueError(f"Unknown log format: {fmt}. Expected one of {sorted(FORMATTERS)}")

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(FORMATTERS[fmt]())
    handler.set_name(_CONSOLE_HANDLER)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(int(severity))
    # One console sink at a time
    for existing in list(logger.handlers):
        if existing.get_name() == _CONSOLE_HANDLER:
            logger.removeHandler(existing)
    logger.addHandler(handler)
    return handler


__all__ = [
    "Severity",
    "LogEntry",
    "PluginsLogger",
    "BasicFormatter",
    "JsonFormatter",
    "configure_logging",
]
