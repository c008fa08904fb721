"""
Data models for the discovery resolver.

Discovery documents are kept verbatim as returned by providers so that
fields the resolver does not interpret are passed through to callers.
``DiscoveryRecord`` exposes the fields the engine reads.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import ResolutionErrorCode, Track


@dataclass
class DiscoveryRecord:
    """A discovery document (official, voluntary, redirect or error)."""

    document: dict = field(default_factory=dict)
    synthetic: bool = False

    @classmethod
    def synthetic_error(
        cls,
        track: Track,
        code: ResolutionErrorCode,
        detail: Optional[str] = None,
    ) -> "DiscoveryRecord":
        """
        Build an engine-produced error record for a track.

        Args:
            track: Track the error stands in for (becomes the record type)
            code: Error code placed in the ``error`` field
            detail: Optional human-readable detail (``error_detailed``)
        """
        document: dict[str, Any] = {"type": track.value, "error": code.value}
        if detail is not None:
            document["error_detailed"] = detail
        return cls(document=document, synthetic=True)

    @property
    def type(self) -> Optional[str]:
        value = self.document.get("type")
        return value if isinstance(value, str) else None

    @property
    def id(self) -> Optional[str]:
        value = self.document.get("id")
        if value is None or value == "":
            return None
        return str(value)

    @property
    def error(self) -> Optional[str]:
        value = self.document.get("error")
        return value if value else None

    @property
    def ttl(self) -> Any:
        return self.document.get("ttl")

    @property
    def providers(self) -> list[str]:
        return _string_list(self.document.get("providers"))

    @property
    def voluntary_providers(self) -> list[str]:
        return _string_list(self.document.get("voluntaryProviders"))

    def to_dict(self) -> dict:
        """Return the document as a plain dictionary."""
        return dict(self.document)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


@dataclass
class CacheEntry:
    """A cached document and the absolute instant (epoch seconds) it expires."""

    value: dict
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class ResolutionResult:
    """Composite result of resolving one identifier."""

    identifier: str
    ttl: int
    official: DiscoveryRecord
    voluntary: DiscoveryRecord

    def to_dict(self) -> dict:
        """Serialize in the external ``{id, ttl, official, voluntary}`` shape."""
        return {
            "id": self.identifier,
            "ttl": self.ttl,
            "official": self.official.to_dict(),
            "voluntary": self.voluntary.to_dict(),
        }
