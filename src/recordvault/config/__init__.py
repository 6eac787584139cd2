"""Configuration system for recordvault.

Provides strongly-typed configuration objects that can be loaded from:
- YAML files
- Environment variables
- Programmatic construction

Configuration is validated before the system starts.
"""

from .system import SystemConfig
from .providers import (
    StoreConfig,
    StoreProviderType,
    RoutingConfig,
    MappingConfig,
    IdempotencyConfig,
    CacheConfig,
    RetryConfig,
    ValidationConfig,
    ServerConfig,
)

__all__ = [
    "SystemConfig",
    "StoreConfig",
    "StoreProviderType",
    "RoutingConfig",
    "MappingConfig",
    "IdempotencyConfig",
    "CacheConfig",
    "RetryConfig",
    "ValidationConfig",
    "ServerConfig",
]
