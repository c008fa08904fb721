"""
Enumeration types for the discovery resolver.

These enums provide type-safe constants for record types, resolution
tracks, error codes, and logging levels.
"""

from enum import Enum


class RecordType(Enum):
    """Value of the ``type`` field of a discovery document."""

    OFFICIAL = "official"
    VOLUNTARY = "voluntary"
    REDIRECT = "redirect"


class Track(Enum):
    """Independent resolution tracks run for every identifier."""

    OFFICIAL = "official"
    VOLUNTARY = "voluntary"

    @property
    def terminal_type(self) -> RecordType:
        """The record type that ends a chain on this track."""
        return RecordType(self.value)


class ResolutionErrorCode(Enum):
    """Error codes carried by synthetic error records."""

    UPSTREAM_DOWN = "upstream_down"
    PROTOCOL_ERROR = "protocol_error"
    OFFICIAL_NOT_AVAILABLE = "official_not_available"


class FetchErrorCode(Enum):
    """Error codes for provider fetch failures."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    INVALID_JSON = "invalid_json"
    MISSING_ID = "missing_id"
    UNKNOWN_ID = "unknown_id"


class IdentifierValidationErrorCode(Enum):
    """Client error codes for identifier validation failures."""

    MISSING_ID = "missing_id"
    INVALID_ID = "invalid_id"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
