"""System-wide configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .providers import (
    CacheConfig,
    IdempotencyConfig,
    MappingConfig,
    RetryConfig,
    RoutingConfig,
    ServerConfig,
    StoreConfig,
    StoreProviderType,
    ValidationConfig,
)

DEFAULT_CONFIG_PATH = "~/.recordvault/config.yaml"


@dataclass
class SystemConfig:
    """Complete system configuration.

    Combines all component configurations into a single object.
    Can be loaded from a YAML file, environment variables or constructed
    programmatically.

    Attributes:
        instance_id: Identifier of this service instance
        latency_budget_ms: Overall budget of a single request
        store: Store provider configuration
        routing: Partition router configuration
        idempotency: Idempotency tracker configuration
        cache: Read cache configuration
        retry: Backoff parameters for transient failures
        validation: Payload validation configuration
        server: HTTP adapter configuration
        debug: Enable debug logging
    """
    instance_id: str = "default"
    latency_budget_ms: float = 500.0
    store: StoreConfig = field(default_factory=StoreConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    idempotency: IdempotencyConfig = field(default_factory=IdempotencyConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    debug: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "SystemConfig":
        """Load configuration from a YAML file (defaults if it is missing)."""
        path = Path(path).expanduser()
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SystemConfig":
        """Create configuration from a dictionary."""
        store_data = dict(data.get("store", {}))
        if "provider" in store_data:
            store_data["provider"] = StoreProviderType(store_data["provider"])

        routing_data = dict(data.get("routing", {}))
        routing_data["mappings"] = [
            MappingConfig(**m) for m in routing_data.get("mappings", [])
        ]

        return cls(
            instance_id=data.get("instance_id", "default"),
            latency_budget_ms=float(data.get("latency_budget_ms", 500.0)),
            store=StoreConfig(**store_data),
            routing=RoutingConfig(**routing_data),
            idempotency=IdempotencyConfig(**data.get("idempotency", {})),
            cache=CacheConfig(**data.get("cache", {})),
            retry=RetryConfig(**data.get("retry", {})),
            validation=ValidationConfig(**data.get("validation", {})),
            server=ServerConfig(**data.get("server", {})),
            debug=bool(data.get("debug", False)),
        )

    @classmethod
    def from_env(cls, prefix: str = "RECORDVAULT") -> "SystemConfig":
        """Load configuration from the file named by ``{prefix}_CONFIG``,
        then apply environment overrides.

        Environment variables:
            {prefix}_CONFIG: YAML config path (default ~/.recordvault/config.yaml)
            {prefix}_INSTANCE_ID: Instance identifier
            {prefix}_DEBUG: Enable debug mode
            {prefix}_LATENCY_BUDGET_MS: Request latency budget

            {prefix}_STORE_PROVIDER: memory|lancedb|http
            {prefix}_STORE_PATH: Local database path
            {prefix}_STORE_URI: Cloud database URI
            {prefix}_STORE_BASE_URL: HTTP document store URL
            {prefix}_STORE_API_KEY: API key of the backend

            {prefix}_PARTITION_COUNT: Shards of the primary mapping
            {prefix}_IDEMPOTENCY_WINDOW_SECONDS: Dedup window
            {prefix}_CACHE_ENABLED: true|false
            {prefix}_CACHE_CAPACITY: Max cached records
            {prefix}_CACHE_TTL_SECONDS: Max age of cached records
            {prefix}_SCHEMAS_PATH: Schema descriptor file
        """
        def get(key: str, default: str = None) -> Optional[str]:
            return os.environ.get(f"{prefix}_{key}", default)

        def get_bool(key: str, default: bool) -> bool:
            val = get(key)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def get_float(key: str, default: float) -> float:
            val = get(key)
            return float(val) if val else default

        def get_int(key: str, default: int) -> int:
            val = get(key)
            return int(val) if val else default

        config = cls.from_file(get("CONFIG", DEFAULT_CONFIG_PATH))

        config.instance_id = get("INSTANCE_ID", config.instance_id)
        config.debug = get_bool("DEBUG", config.debug)
        config.latency_budget_ms = get_float("LATENCY_BUDGET_MS", config.latency_budget_ms)

        provider = get("STORE_PROVIDER")
        if provider:
            config.store.provider = StoreProviderType(provider)
        config.store.path = get("STORE_PATH", config.store.path)
        config.store.uri = get("STORE_URI", config.store.uri)
        config.store.base_url = get("STORE_BASE_URL", config.store.base_url)
        config.store.api_key = get("STORE_API_KEY", config.store.api_key)

        config.routing.partition_count = get_int("PARTITION_COUNT", config.routing.partition_count)
        config.idempotency.window_seconds = get_float(
            "IDEMPOTENCY_WINDOW_SECONDS", config.idempotency.window_seconds
        )
        config.cache.enabled = get_bool("CACHE_ENABLED", config.cache.enabled)
        config.cache.capacity = get_int("CACHE_CAPACITY", config.cache.capacity)
        config.cache.ttl_seconds = get_float("CACHE_TTL_SECONDS", config.cache.ttl_seconds)
        config.validation.schemas_path = get("SCHEMAS_PATH", config.validation.schemas_path)

        return config

    @classmethod
    def for_testing(cls, instance_id: str = "test") -> "SystemConfig":
        """Create a configuration suitable for testing.

        In-memory store, few shards, small cache, fast retries.
        """
        return cls(
            instance_id=instance_id,
            store=StoreConfig(provider=StoreProviderType.MEMORY),
            routing=RoutingConfig(partition_count=4),
            idempotency=IdempotencyConfig(window_seconds=60.0, stripes=8),
            cache=CacheConfig(capacity=128, ttl_seconds=60.0, segments=4),
            retry=RetryConfig(max_attempts=3, backoff_base_ms=1.0, backoff_max_ms=5.0),
            debug=True,
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.instance_id or not self.instance_id.strip():
            errors.append("instance_id cannot be empty")
        if self.latency_budget_ms <= 0:
            errors.append(f"latency_budget_ms must be positive, got {self.latency_budget_ms}")

        # Store
        if self.store.provider == StoreProviderType.LANCEDB:
            if not self.store.path and not self.store.uri:
                errors.append("LanceDB store requires path or uri")
        if self.store.provider == StoreProviderType.HTTP and not self.store.base_url:
            errors.append("HTTP store requires base_url")
        if self.store.timeout_seconds <= 0:
            errors.append(f"store.timeout_seconds must be positive, got {self.store.timeout_seconds}")

        # Routing
        if self.routing.partition_count < 1:
            errors.append(f"routing.partition_count must be >= 1, got {self.routing.partition_count}")
        versions = [self.routing.version] + [m.version for m in self.routing.mappings]
        if len(set(versions)) != len(versions):
            errors.append(f"routing mapping versions must be unique, got {versions}")
        for m in self.routing.mappings:
            if m.partition_count < 1:
                errors.append(f"routing mapping {m.version} partition_count must be >= 1")
        for v in [self.routing.write_version, *self.routing.read_versions]:
            if v is not None and v not in versions:
                errors.append(f"routing version {v} is not defined")

        # Idempotency
        if self.idempotency.window_seconds <= 0:
            errors.append("idempotency.window_seconds must be positive")
        if self.idempotency.reservation_timeout_seconds <= 0:
            errors.append("idempotency.reservation_timeout_seconds must be positive")
        if self.idempotency.stripes < 1:
            errors.append("idempotency.stripes must be >= 1")
        if self.idempotency.sweep_interval_seconds <= 0:
            errors.append("idempotency.sweep_interval_seconds must be positive")

        # Cache
        if self.cache.enabled:
            if self.cache.capacity < 1:
                errors.append(f"cache.capacity must be >= 1, got {self.cache.capacity}")
            if self.cache.ttl_seconds <= 0:
                errors.append("cache.ttl_seconds must be positive")
            if self.cache.segments < 1:
                errors.append("cache.segments must be >= 1")

        # Retry
        if self.retry.max_attempts < 1:
            errors.append(f"retry.max_attempts must be >= 1, got {self.retry.max_attempts}")
        if self.retry.backoff_base_ms < 0 or self.retry.backoff_max_ms < 0:
            errors.append("retry backoff values must be non-negative")
        if self.retry.backoff_multiplier < 1:
            errors.append("retry.backoff_multiplier must be >= 1")

        # Validation
        if self.validation.max_payload_bytes < 1:
            errors.append("validation.max_payload_bytes must be >= 1")

        return errors
