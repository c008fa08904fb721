"""
TTL policy for cached discovery records.

Providers declare a ``ttl`` in seconds. The policy clamps it into the
operator-configured bounds and falls back to the default for missing or
invalid values; it never raises.
"""

import time
from typing import Any, Callable, Optional

from .config import TTLConfig


class TTLPolicy:
    """Clamps provider-declared TTLs and converts them to expiry instants."""

    def __init__(
        self,
        config: TTLConfig,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the policy.

        Args:
            config: TTL bounds (min, max, default)
            clock: Returns the current time as epoch seconds (defaults to time.time)
        """
        self._config = config
        self._clock = clock or time.time

    def clamp(self, declared_ttl: Any) -> int:
        """
        Return the effective TTL in seconds for a declared value.

        Args:
            declared_ttl: The provider's ``ttl`` field, possibly absent or malformed

        Returns:
            The default when the value is not a positive integer, otherwise
            the value clamped into ``[minimum, maximum]``
        """
        ttl = self._coerce(declared_ttl)
        if ttl is None or ttl < 1:
            return self._config.default
        return max(min(ttl, self._config.maximum), self._config.minimum)

    def resolve_expiry(self, declared_ttl: Any) -> float:
        """Absolute expiry instant (epoch seconds) for a declared TTL."""
        return self._clock() + self.clamp(declared_ttl)

    @staticmethod
    def _coerce(value: Any) -> Optional[int]:
        # bool is an int subclass; a JSON true is not a TTL
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if value != value or value in (float("inf"), float("-inf")):
                return None
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None

    @property
    def config(self) -> TTLConfig:
        return self._config
