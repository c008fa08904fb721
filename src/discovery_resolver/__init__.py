"""
Discovery Resolver - federated OpenDiscovery identifier resolution.

This package resolves business identifiers into official and voluntary
discovery records by following provider delegations, caching results
with operator-clamped TTLs.
"""

__version__ = "0.1.0"
__author__ = "Discovery Resolver Team"

from discovery_resolver.exceptions import (
    ResolverError,
    FetchError,
    TransportError,
    ProtocolError,
    ChainAborted,
    ConfigurationError,
    PersistenceError,
)
from discovery_resolver.enums import (
    RecordType,
    Track,
    ResolutionErrorCode,
    FetchErrorCode,
    IdentifierValidationErrorCode,
    LogLevel,
)
from discovery_resolver.config import (
    TTLConfig,
    ProviderConfig,
    LoggingConfig,
    ResolverConfig,
    load_config_from_env,
    parse_provider_list,
)
from discovery_resolver.models import (
    DiscoveryRecord,
    CacheEntry,
    ResolutionResult,
)
from discovery_resolver.identifier import (
    IdentifierValidator,
    IdentifierValidationResult,
    IdentifierValidationError,
)
from discovery_resolver.ttl_policy import TTLPolicy
from discovery_resolver.keys import (
    track_key,
    redirect_key,
    redirect_keys,
    candidate_keys,
)
from discovery_resolver.cache import (
    CacheStore,
    CacheSnapshot,
    InMemoryCache,
    JSONFileCache,
)
from discovery_resolver.audit_logger import (
    AuditLogger,
    LogEntry,
)
from discovery_resolver.provider_client import ProviderClient
from discovery_resolver.chain_resolver import ChainResolver
from discovery_resolver.orchestrator import ResolutionOrchestrator
from discovery_resolver.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "ResolverError",
    "FetchError",
    "TransportError",
    "ProtocolError",
    "ChainAborted",
    "ConfigurationError",
    "PersistenceError",
    # Enums
    "RecordType",
    "Track",
    "ResolutionErrorCode",
    "FetchErrorCode",
    "IdentifierValidationErrorCode",
    "LogLevel",
    # Configuration
    "TTLConfig",
    "ProviderConfig",
    "LoggingConfig",
    "ResolverConfig",
    "load_config_from_env",
    "parse_provider_list",
    # Models
    "DiscoveryRecord",
    "CacheEntry",
    "ResolutionResult",
    # Identifier
    "IdentifierValidator",
    "IdentifierValidationResult",
    "IdentifierValidationError",
    # TTL Policy
    "TTLPolicy",
    # Cache keys
    "track_key",
    "redirect_key",
    "redirect_keys",
    "candidate_keys",
    # Cache stores
    "CacheStore",
    "CacheSnapshot",
    "InMemoryCache",
    "JSONFileCache",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Provider Client
    "ProviderClient",
    # Chain Resolver
    "ChainResolver",
    # Orchestrator
    "ResolutionOrchestrator",
    # CLI
    "cli_main",
    "create_parser",
]
