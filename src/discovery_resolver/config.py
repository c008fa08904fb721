"""
Configuration dataclasses for the discovery resolver.

This module defines the configuration structures threaded into the
resolution orchestrator: TTL bounds, provider access settings, logging,
and the engine limits. Values are sourced from the environment (and an
optional ``.env`` file) once at process start by ``load_config_from_env``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from .enums import LogLevel
from .exceptions import ConfigurationError

DEFAULT_USER_AGENT = "OpenDiscoveryResolver (+https://www.opendiscovery.biz/)"

ENV_TTL_MIN = "RESOLVER_TTL_MIN"
ENV_TTL_MAX = "RESOLVER_TTL_MAX"
ENV_TTL_DEFAULT = "RESOLVER_TTL_DEFAULT"
ENV_PROVIDER_ROOT = "PROVIDER_ROOT"
ENV_PARALLEL_FALLBACK = "RESOLVER_PARALLEL_FALLBACK"
ENV_DISTINCT_PROTOCOL_ERRORS = "RESOLVER_DISTINCT_PROTOCOL_ERRORS"
ENV_LOG_LEVEL = "RESOLVER_LOG_LEVEL"
ENV_LOG_FORMAT = "RESOLVER_LOG_FORMAT"

LOG_FORMATS = ("json", "text", "both")
LOG_LEVELS = tuple(level.value for level in LogLevel)


@dataclass
class TTLConfig:
    """Operator bounds applied to provider-declared TTLs (seconds)."""

    minimum: int
    maximum: int
    default: int

    def validate(self) -> None:
        """
        Check that ``0 < minimum <= default <= maximum``.

        Raises:
            ConfigurationError: If the bounds are inconsistent
        """
        if not (0 < self.minimum <= self.default <= self.maximum):
            raise ConfigurationError(
                code="invalid_ttl_bounds",
                message=(
                    "TTL bounds must satisfy 0 < min <= default <= max, got "
                    f"min={self.minimum} default={self.default} max={self.maximum}"
                ),
                details={
                    "minimum": self.minimum,
                    "default": self.default,
                    "maximum": self.maximum,
                },
            )


@dataclass
class ProviderConfig:
    """How providers are reached."""

    root_providers: list[str]
    connect_timeout: float = 5.0
    read_timeout: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT
    parallel_fallback: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "warn"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ResolverConfig:
    """Main configuration combining all sub-configurations."""

    ttl: TTLConfig
    providers: ProviderConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    presentation_ttl: int = 3600
    max_hops: int = 5
    fan_out: int = 2
    distinct_protocol_errors: bool = False


def parse_provider_list(raw: Optional[str]) -> list[str]:
    """
    Split a comma-separated provider list, dropping blanks.

    Args:
        raw: Value such as ``"https://a.example, https://b.example"``

    Returns:
        Ordered list of provider base URLs
    """
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _int_env(values: Mapping[str, Optional[str]], name: str) -> int:
    raw = values.get(name)
    if raw is None or not str(raw).strip():
        raise ConfigurationError(
            code="missing_setting",
            message=f"Required setting {name} is not set",
            details={"setting": name},
        )
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(
            code="invalid_setting",
            message=f"Setting {name} must be an integer, got {raw!r}",
            details={"setting": name, "value": raw},
        )


def _bool_env(values: Mapping[str, Optional[str]], name: str) -> bool:
    raw = values.get(name)
    if raw is None:
        return False
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> ResolverConfig:
    """
    Build a ResolverConfig from environment variables.

    Values from ``env_file`` (a dotenv file) are used as defaults and are
    overridden by ``environ``.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)
        env_file: Optional path to a ``.env`` file

    Returns:
        Validated ResolverConfig

    Raises:
        ConfigurationError: If a required setting is missing or invalid
    """
    values: dict[str, Optional[str]] = {}
    if env_file is not None:
        if not Path(env_file).exists():
            raise ConfigurationError(
                code="missing_env_file",
                message=f"Environment file not found: {env_file}",
                details={"env_file": str(env_file)},
            )
        values.update(dotenv_values(env_file))
    values.update(os.environ if environ is None else environ)

    ttl = TTLConfig(
        minimum=_int_env(values, ENV_TTL_MIN),
        maximum=_int_env(values, ENV_TTL_MAX),
        default=_int_env(values, ENV_TTL_DEFAULT),
    )
    ttl.validate()

    root_providers = parse_provider_list(values.get(ENV_PROVIDER_ROOT))
    if not root_providers:
        raise ConfigurationError(
            code="missing_setting",
            message=f"Required setting {ENV_PROVIDER_ROOT} lists no providers",
            details={"setting": ENV_PROVIDER_ROOT},
        )

    level = (values.get(ENV_LOG_LEVEL) or "warn").strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            code="invalid_setting",
            message=f"Setting {ENV_LOG_LEVEL} must be one of {', '.join(LOG_LEVELS)}",
            details={"setting": ENV_LOG_LEVEL, "value": level},
        )

    output_format = (values.get(ENV_LOG_FORMAT) or "text").strip().lower()
    if output_format not in LOG_FORMATS:
        raise ConfigurationError(
            code="invalid_setting",
            message=f"Setting {ENV_LOG_FORMAT} must be one of {', '.join(LOG_FORMATS)}",
            details={"setting": ENV_LOG_FORMAT, "value": output_format},
        )

    return ResolverConfig(
        ttl=ttl,
        providers=ProviderConfig(
            root_providers=root_providers,
            parallel_fallback=_bool_env(values, ENV_PARALLEL_FALLBACK),
        ),
        logging=LoggingConfig(
            level=level,
            output_format=output_format,
        ),
        distinct_protocol_errors=_bool_env(values, ENV_DISTINCT_PROTOCOL_ERRORS),
    )
