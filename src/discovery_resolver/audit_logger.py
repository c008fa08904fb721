"""
Audit Logger module for the discovery resolver.

Provides structured logging with dual-format output (JSON and human-readable
text) and a minimum severity threshold. Entries are kept in memory so
callers and tests can inspect what a resolution did.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from .enums import LogLevel


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)


class AuditLogger:
    """
    Structured logger with JSON and/or text output.

    Entries below ``min_level`` are dropped before they are stored or written.
    """

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            min_level: Lowest level that is recorded
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(cls, level: str, output_format: str, output_stream: Optional[TextIO] = None) -> "AuditLogger":
        """Build a logger from ``LoggingConfig`` values; unknown levels fall back to info."""
        try:
            min_level = LogLevel(level)
        except ValueError:
            min_level = LogLevel.INFO
        return cls(output_format=output_format, output_stream=output_stream, min_level=min_level)

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Get all recorded entries."""
        return self._entries.copy()

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an entry in the configured format(s).

        Args:
            level: Log severity level
            component: Component name generating the log
            message: Human-readable log message
            data: Optional additional data to include

        Returns:
            The created LogEntry, or None if filtered by level
        """
        if level.severity < self._min_level.severity:
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=dict(data or {}),
        )
        self._entries.append(entry)
        self._output_entry(entry)
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an error with full context.

        Args:
            component: Component name generating the log
            message: Human-readable error message
            error: Optional exception object
            request_url: Optional URL of the failed request
            response_status_code: Optional HTTP status code
            additional_data: Optional additional context data

        Returns:
            The created LogEntry object
        """
        data = additional_data.copy() if additional_data else {}

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if code is not None:
                data["error_code"] = code

        if request_url is not None:
            data["request_url"] = request_url

        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self._format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self._format_text(entry) + "\n")

        self._output_stream.flush()

    def _format_json(self, entry: LogEntry) -> str:
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }
        return json.dumps(obj, ensure_ascii=False, default=str)

    def _format_text(self, entry: LogEntry) -> str:
        # Format: [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            entry.message,
        ]
        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False, default=str))
        return " ".join(parts)

    def get_json_output(self, entry: LogEntry) -> str:
        return self._format_json(entry)

    def get_text_output(self, entry: LogEntry) -> str:
        return self._format_text(entry)

    def clear_entries(self) -> None:
        self._entries.clear()
