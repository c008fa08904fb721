"""
Resolution Orchestrator for the discovery resolver.

This module coordinates the components that turn an identifier into a
resolution result:
- one batched cache read of every key the lookup may need
- the official track, starting at the most specific cached redirect or at
  the configured root providers
- the voluntary track, when the official record advertises voluntary
  providers
- persistence of terminal records and composition of the output
"""

import json
import time
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .cache import CacheSnapshot, CacheStore
from .chain_resolver import ChainResolver
from .config import ResolverConfig
from .enums import ResolutionErrorCode, Track
from .exceptions import PersistenceError
from .keys import candidate_keys, redirect_keys, track_key
from .models import DiscoveryRecord, ResolutionResult
from .provider_client import ProviderClient
from .ttl_policy import TTLPolicy


class ResolutionOrchestrator:
    """
    Main entry point for identifier resolution.

    Resolution always succeeds at this level: provider failures are
    reported inside the returned records.
    """

    COMPONENT = "ResolutionOrchestrator"

    def __init__(
        self,
        config: ResolverConfig,
        cache: CacheStore,
        client: Optional[ProviderClient] = None,
        logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: Resolver configuration (TTL bounds, root providers, limits)
            cache: Cache store shared across lookups
            client: Optional provider client; one is built from config if omitted
                and closed with the orchestrator
            logger: Optional audit logger
            clock: Optional epoch-seconds clock used for cache expiry
        """
        self._config = config
        self._cache = cache
        self._logger = logger
        self._ttl_policy = TTLPolicy(config.ttl, clock=clock)

        self._owns_client = client is None
        self._client = client or ProviderClient(
            connect_timeout=config.providers.connect_timeout,
            read_timeout=config.providers.read_timeout,
            user_agent=config.providers.user_agent,
            logger=logger,
        )

        self._chain_resolver = ChainResolver(
            client=self._client,
            cache=cache,
            ttl_policy=self._ttl_policy,
            max_hops=config.max_hops,
            fan_out=config.fan_out,
            parallel_fallback=config.providers.parallel_fallback,
            distinct_protocol_errors=config.distinct_protocol_errors,
            logger=logger,
        )

    async def __aenter__(self) -> "ResolutionOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the provider client if this orchestrator created it."""
        if self._owns_client:
            await self._client.close()

    async def resolve_identifier(self, identifier: str) -> ResolutionResult:
        """
        Resolve a normalized identifier into official and voluntary records.

        Args:
            identifier: Normalized identifier (see IdentifierValidator)

        Returns:
            ResolutionResult with the fixed presentation TTL
        """
        start_time = time.perf_counter()
        self._log_info("Starting lookup", {"identifier": identifier})

        snapshot = CacheSnapshot(await self._cache.get_many(candidate_keys(identifier)))

        official = await self._resolve_official(identifier, snapshot)
        voluntary = await self._resolve_voluntary(identifier, official, snapshot)

        self._log_info(
            "Lookup completed",
            {
                "identifier": identifier,
                "official_error": official.error,
                "voluntary_error": voluntary.error,
                "duration_ms": (time.perf_counter() - start_time) * 1000,
            },
        )

        return ResolutionResult(
            identifier=identifier,
            ttl=self._config.presentation_ttl,
            official=official,
            voluntary=voluntary,
        )

    async def lookup(self, identifier: str, pretty: bool = False) -> str:
        """Resolve and serialize the result as JSON (indented when ``pretty``)."""
        result = await self.resolve_identifier(identifier)
        if pretty:
            return json.dumps(result.to_dict(), indent=4, ensure_ascii=False)
        return json.dumps(result.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def initial_providers(self, identifier: str, snapshot: CacheSnapshot) -> list[str]:
        """
        Providers the official chain starts from.

        The most specific cached redirect wins; without one, the configured
        root providers are used.
        """
        for key in redirect_keys(identifier):
            cached = snapshot.get(key)
            if cached is None:
                continue
            providers = DiscoveryRecord(document=cached).providers
            if providers:
                self._log_debug("Starting from cached redirect", {"key": key})
                return providers
        return list(self._config.providers.root_providers)

    async def _resolve_official(
        self,
        identifier: str,
        snapshot: CacheSnapshot,
    ) -> DiscoveryRecord:
        key = track_key(identifier, Track.OFFICIAL)
        cached = snapshot.get(key)
        if cached is not None:
            self._log_debug("Official record served from cache", {"key": key})
            return DiscoveryRecord(document=cached)

        record = await self._chain_resolver.resolve(
            Track.OFFICIAL,
            self.initial_providers(identifier, snapshot),
            identifier,
            snapshot,
        )
        if not record.synthetic:
            await self._store(key, record)
        return record

    async def _resolve_voluntary(
        self,
        identifier: str,
        official: DiscoveryRecord,
        snapshot: CacheSnapshot,
    ) -> DiscoveryRecord:
        if official.error or not official.voluntary_providers:
            return DiscoveryRecord.synthetic_error(
                Track.VOLUNTARY, ResolutionErrorCode.OFFICIAL_NOT_AVAILABLE
            )

        key = track_key(identifier, Track.VOLUNTARY)
        cached = snapshot.get(key)
        if cached is not None:
            self._log_debug("Voluntary record served from cache", {"key": key})
            return DiscoveryRecord(document=cached)

        record = await self._chain_resolver.resolve(
            Track.VOLUNTARY,
            official.voluntary_providers,
            identifier,
            snapshot,
        )
        # Synthetic failures are cached as well.
        await self._store(key, record)
        return record

    async def _store(self, key: str, record: DiscoveryRecord) -> None:
        try:
            await self._cache.put(
                key, record.to_dict(), self._ttl_policy.resolve_expiry(record.ttl)
            )
        except PersistenceError as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    "Failed to cache record",
                    error=e,
                    additional_data={"key": key},
                )

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug(self.COMPONENT, message, data)

    @property
    def ttl_policy(self) -> TTLPolicy:
        return self._ttl_policy

    @property
    def chain_resolver(self) -> ChainResolver:
        return self._chain_resolver

    @property
    def config(self) -> ResolverConfig:
        return self._config
