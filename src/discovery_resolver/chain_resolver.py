"""
Chain resolver: follows provider delegations until a terminal record.

Per hop, the first provider of the current list is asked; if it fails the
second is asked; if both fail the whole chain is aborted. ``redirect``
answers replace the provider list and the loop continues, up to a fixed
hop bound. Failures never leave ``resolve``: they become synthetic error
records of the track's type.

On the official track, redirects that name a narrower identifier prefix
are written to the cache immediately under ``<prefix>_redirect``. A key
already present in the lookup's snapshot is never overwritten, so when a
provider hands out different redirects for sub-ranges of one prefix only
the most specific one seen first is kept.
"""

import asyncio
from typing import Optional, Sequence

from .audit_logger import AuditLogger
from .cache import CacheSnapshot, CacheStore
from .enums import RecordType, ResolutionErrorCode, Track
from .exceptions import ChainAborted, FetchError, PersistenceError
from .keys import is_seedable_prefix, redirect_key
from .models import DiscoveryRecord
from .provider_client import ProviderClient
from .ttl_policy import TTLPolicy


class ChainResolver:
    """Resolves one track of one identifier by chasing provider redirects."""

    COMPONENT = "ChainResolver"

    def __init__(
        self,
        client: ProviderClient,
        cache: CacheStore,
        ttl_policy: TTLPolicy,
        max_hops: int = 5,
        fan_out: int = 2,
        parallel_fallback: bool = False,
        distinct_protocol_errors: bool = False,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the chain resolver.

        Args:
            client: Provider client used for every fetch
            cache: Store that receives seeded redirect records
            ttl_policy: Policy computing redirect expiry
            max_hops: Maximum number of fetch rounds per chain
            fan_out: Providers attempted per hop
            parallel_fallback: Ask the hop's providers concurrently
            distinct_protocol_errors: Report structural failures as
                ``protocol_error`` instead of ``upstream_down``
            logger: Optional audit logger
        """
        self._client = client
        self._cache = cache
        self._ttl_policy = ttl_policy
        self._max_hops = max_hops
        self._fan_out = fan_out
        self._parallel_fallback = parallel_fallback
        self._distinct_protocol_errors = distinct_protocol_errors
        self._logger = logger

    async def resolve(
        self,
        track: Track,
        initial_providers: Sequence[str],
        identifier: str,
        snapshot: CacheSnapshot,
    ) -> DiscoveryRecord:
        """
        Resolve ``identifier`` on ``track`` starting at ``initial_providers``.

        Args:
            track: Official or voluntary
            initial_providers: Provider base URLs to start from
            identifier: Normalized identifier
            snapshot: Cache snapshot of the current lookup (updated in place
                when redirects are seeded)

        Returns:
            The terminal record, or a synthetic error record of the track's type
        """
        try:
            return await self._follow(track, list(initial_providers), identifier, snapshot)
        except ChainAborted as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    f"Resolution aborted on {track.value} track",
                    error=e,
                    additional_data={"identifier": identifier, **e.details},
                )
            return DiscoveryRecord.synthetic_error(
                track, ResolutionErrorCode(e.code), e.message
            )

    async def _follow(
        self,
        track: Track,
        providers: list[str],
        identifier: str,
        snapshot: CacheSnapshot,
    ) -> DiscoveryRecord:
        for hop in range(self._max_hops):
            record = await self._fetch_first_available(track, providers, identifier)
            self._log_debug(
                f"Hop {hop} answered with type {record.type!r}",
                {"identifier": identifier, "track": track.value, "providers": providers[: self._fan_out]},
            )

            if record.type == track.terminal_type.value:
                return record

            if record.type != RecordType.REDIRECT.value:
                raise ChainAborted(
                    code=self._structural_error_code(),
                    message=f"Got unsupported type from {track.value} providers",
                    details={"type": record.type},
                )

            if not record.providers:
                raise ChainAborted(
                    code=self._structural_error_code(),
                    message=f"No providers in redirect from {track.value} provider",
                    details={"redirect_id": record.id},
                )

            if track is Track.OFFICIAL:
                await self._seed_redirect(record, identifier, snapshot)

            providers = record.providers

        raise ChainAborted(
            code=ResolutionErrorCode.UPSTREAM_DOWN.value,
            message=f"Too many redirects from {track.value} providers",
            details={"max_hops": self._max_hops},
        )

    async def _fetch_first_available(
        self,
        track: Track,
        providers: list[str],
        identifier: str,
    ) -> DiscoveryRecord:
        candidates = providers[: self._fan_out]
        if not candidates:
            raise ChainAborted(
                code=ResolutionErrorCode.UPSTREAM_DOWN.value,
                message=f"{track.value.capitalize()} providers down: no providers",
            )

        last_error: Optional[FetchError] = None
        if self._parallel_fallback and len(candidates) > 1:
            try:
                return await self._fetch_concurrently(candidates, identifier)
            except FetchError as e:
                last_error = e
        else:
            for index, provider in enumerate(candidates):
                if index:
                    self._log_warn(
                        "Falling back to next provider",
                        {"provider": provider, "previous_error": last_error.message},
                    )
                try:
                    return await self._client.fetch(provider, identifier)
                except FetchError as e:
                    last_error = e

        raise ChainAborted(
            code=ResolutionErrorCode.UPSTREAM_DOWN.value,
            message=f"{track.value.capitalize()} providers down: {last_error.message}",
            details={"providers": candidates},
        )

    async def _fetch_concurrently(
        self,
        candidates: list[str],
        identifier: str,
    ) -> DiscoveryRecord:
        """
        Ask all candidates at once; the first successful answer wins.

        Outstanding attempts are cancelled once an answer is chosen.

        Raises:
            FetchError: The last failure, if every attempt failed
        """
        tasks = [
            asyncio.ensure_future(self._client.fetch(provider, identifier))
            for provider in candidates
        ]
        last_error: Optional[FetchError] = None
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    return await next_done
                except FetchError as e:
                    last_error = e
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        raise last_error

    async def _seed_redirect(
        self,
        record: DiscoveryRecord,
        identifier: str,
        snapshot: CacheSnapshot,
    ) -> None:
        if record.id is None:
            return
        prefix = record.id.upper()
        if not is_seedable_prefix(prefix, identifier):
            return

        key = redirect_key(prefix)
        if snapshot.contains(key):
            return

        value = record.to_dict()
        try:
            await self._cache.put(key, value, self._ttl_policy.resolve_expiry(record.ttl))
        except PersistenceError as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    "Failed to cache redirect",
                    error=e,
                    additional_data={"key": key},
                )
        snapshot.mark(key, value)
        self._log_debug("Seeded redirect", {"key": key, "providers": record.providers})

    def _structural_error_code(self) -> str:
        if self._distinct_protocol_errors:
            return ResolutionErrorCode.PROTOCOL_ERROR.value
        return ResolutionErrorCode.UPSTREAM_DOWN.value

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug(self.COMPONENT, message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.warn(self.COMPONENT, message, data)
