"""Layered configuration: environment > local override file > bff.toml > defaults."""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import tomllib
from typing import Any, FrozenSet, List, Mapping, Optional, Tuple

from dotenv import dotenv_values

from krail_bff.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "bff.toml"
DEFAULT_LOCAL_ENV_FILE = ".env.local"

DEFAULT_BASE_URL = "https://api.transport.nsw.gov.au"
DEFAULT_CORS_ORIGINS = "http://127.0.0.1,http://localhost,http://127.0.0.1:8080,http://localhost:8080"


class ConfigSources:
    def __init__(
        self,
        environ: Mapping[str, str],
        local: Mapping[str, Optional[str]],
        declared: Mapping[str, Any],
    ) -> None:
        self.environ = environ
        self.local = local
        self.declared = declared

    @classmethod
    def load(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        config_file: Optional[str] = None,
        local_env_file: Optional[str] = None,
    ) -> "ConfigSources":
        environ = os.environ if environ is None else environ
        config_path = Path(config_file or environ.get("BFF_CONFIG_FILE", DEFAULT_CONFIG_FILE))
        local_path = Path(
            local_env_file or environ.get("BFF_LOCAL_ENV_FILE", DEFAULT_LOCAL_ENV_FILE)
        )

        declared: Mapping[str, Any] = {}
        if config_path.is_file():
            with config_path.open("rb") as fh:
                try:
                    declared = tomllib.load(fh)
                except tomllib.TOMLDecodeError as exc:
                    raise ConfigError(f"invalid config file {config_path}: {exc}") from exc
            log.info("Loaded declarative config from %s", config_path)

        local: Mapping[str, Optional[str]] = {}
        if local_path.is_file():
            local = dotenv_values(local_path)
            log.info("Loaded local overrides from %s", local_path)

        return cls(environ, local, declared)

    def raw(self, env_name: str, toml_key: str) -> Optional[Any]:
        value = self.environ.get(env_name)
        if value is not None:
            return value
        local_value = self.local.get(env_name)
        if local_value is not None:
            return local_value
        node: Any = self.declared
        for part in toml_key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def get_str(self, env_name: str, toml_key: str, default: str) -> str:
        value = self.raw(env_name, toml_key)
        if value is None:
            return default
        return str(value).strip()

    def get_int(self, env_name: str, toml_key: str, default: int) -> int:
        value = self.raw(env_name, toml_key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            log.warning("Ignoring non-integer %s=%r, using %s", env_name, value, default)
            return default

    def get_float(self, env_name: str, toml_key: str, default: float) -> float:
        value = self.raw(env_name, toml_key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            log.warning("Ignoring non-numeric %s=%r, using %s", env_name, value, default)
            return default

    def get_csv(self, env_name: str, toml_key: str, default: str) -> List[str]:
        value = self.raw(env_name, toml_key)
        if value is None:
            value = default
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return [item.strip() for item in str(value).split(",") if item.strip()]


@dataclass(frozen=True)
class UpstreamConfig:
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    connect_timeout_ms: int = 5_000
    read_timeout_ms: int = 5_000
    retry_max_attempts: int = 2
    retry_backoff_ms: int = 200
    retry_backoff_max_ms: int = 6_000
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_ms: int = 30_000

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("upstream base URL must not be empty")
        for name in (
            "connect_timeout_ms",
            "read_timeout_ms",
            "retry_max_attempts",
            "retry_backoff_ms",
            "retry_backoff_max_ms",
            "breaker_reset_timeout_ms",
        ):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0")
        if self.breaker_failure_threshold < 1:
            raise ConfigError("breaker_failure_threshold must be >= 1")

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout_ms / 1000.0, self.read_timeout_ms / 1000.0)

    @property
    def root_url(self) -> str:
        return self.base_url.rstrip("/") + "/"

    @property
    def trip_url(self) -> str:
        return self.base_url.rstrip("/") + "/v1/tp/trip"


@dataclass(frozen=True)
class AppConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"
    rate_limit_rps: float = 3.0
    rate_limit_burst: int = 3
    cors_allowed_origins: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.rate_limit_rps < 0:
            raise ConfigError("rate_limit_rps must be >= 0")
        if self.rate_limit_burst < 1:
            raise ConfigError("rate_limit_burst must be >= 1")


def load_upstream_config(sources: ConfigSources) -> UpstreamConfig:
    return UpstreamConfig(
        base_url=sources.get_str("NSW_BASE_URL", "nsw.base_url", DEFAULT_BASE_URL),
        api_key=sources.get_str("NSW_API_KEY", "nsw.api_key", ""),
        connect_timeout_ms=sources.get_int("NSW_CONNECT_TIMEOUT_MS", "nsw.connect_timeout_ms", 5_000),
        read_timeout_ms=sources.get_int("NSW_READ_TIMEOUT_MS", "nsw.read_timeout_ms", 5_000),
        retry_max_attempts=sources.get_int("NSW_RETRY_MAX_ATTEMPTS", "nsw.retry_max_attempts", 2),
        retry_backoff_ms=sources.get_int("NSW_RETRY_BACKOFF_MS", "nsw.retry_backoff_ms", 200),
        retry_backoff_max_ms=sources.get_int(
            "NSW_RETRY_BACKOFF_MAX_MS", "nsw.retry_backoff_max_ms", 6_000
        ),
        breaker_failure_threshold=sources.get_int(
            "NSW_BREAKER_FAILURE_THRESHOLD", "nsw.breaker_failure_threshold", 5
        ),
        breaker_reset_timeout_ms=sources.get_int(
            "NSW_BREAKER_RESET_TIMEOUT_MS", "nsw.breaker_reset_timeout_ms", 30_000
        ),
    )


def load_app_config(sources: ConfigSources) -> AppConfig:
    return AppConfig(
        host=sources.get_str("APP_HOST", "bff.host", "127.0.0.1"),
        port=sources.get_int("APP_PORT", "bff.port", 8080),
        log_level=sources.get_str("LOG_LEVEL", "bff.log_level", "INFO").upper(),
        rate_limit_rps=sources.get_float("BFF_RATE_LIMIT_RPS", "bff.rate_limit_rps", 3.0),
        rate_limit_burst=sources.get_int("BFF_RATE_LIMIT_BURST", "bff.rate_limit_burst", 3),
        cors_allowed_origins=frozenset(
            sources.get_csv("CORS_ALLOWED_ORIGINS", "bff.cors_allowed_origins", DEFAULT_CORS_ORIGINS)
        ),
    )
