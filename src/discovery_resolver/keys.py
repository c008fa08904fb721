"""Cache key builders. Single place for the key format.

Keys are ``<identifier>_official``, ``<identifier>_voluntary`` for terminal
records and ``<prefix>_redirect`` for delegations, where ``prefix`` is a
strict prefix of the identifier of at least two characters.
"""

from .enums import RecordType, Track

KEY_SEP = "_"
MIN_PREFIX_LENGTH = 2


def track_key(identifier: str, track: Track) -> str:
    """Cache key for the terminal record of a track."""
    return f"{identifier}{KEY_SEP}{track.value}"


def redirect_key(prefix: str) -> str:
    """Cache key for a redirect covering every identifier under ``prefix``."""
    return f"{prefix}{KEY_SEP}{RecordType.REDIRECT.value}"


def redirect_prefixes(identifier: str) -> list[str]:
    """Strict prefixes of ``identifier`` from longest down to two characters."""
    return [
        identifier[:length]
        for length in range(len(identifier) - 1, MIN_PREFIX_LENGTH - 1, -1)
    ]


def redirect_keys(identifier: str) -> list[str]:
    """Redirect cache keys for ``identifier``, longest prefix first."""
    return [redirect_key(prefix) for prefix in redirect_prefixes(identifier)]


def candidate_keys(identifier: str) -> list[str]:
    """Every key a lookup of ``identifier`` may read, for one batched fetch."""
    return [
        track_key(identifier, Track.OFFICIAL),
        track_key(identifier, Track.VOLUNTARY),
        *redirect_keys(identifier),
    ]


def is_seedable_prefix(prefix: str, identifier: str) -> bool:
    """True if a redirect for ``prefix`` may be cached while resolving ``identifier``."""
    return (
        MIN_PREFIX_LENGTH <= len(prefix) < len(identifier)
        and identifier.startswith(prefix)
    )
