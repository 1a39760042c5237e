# coherence/utils/kv_store.py
"""
Portais KV Store Protocol — v1.0.0

Abstract interface for key-value blob storage backends.
All persistence of coherence state goes through this interface.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


# =============================================================================
# ERRORS
# =============================================================================

class KVStoreError(Exception):
    """Base error for KV backends."""


class KVCapacityError(KVStoreError):
    """The write was refused because the backend is out of space."""


# =============================================================================
# CONFIG
# =============================================================================

@dataclass
class KVConfig:
    """Configuration for KV store connection."""
    provider: str = "file"  # "file", "memory" or "upstash"
    url: str = ""
    token: Optional[str] = None  # Required for Upstash
    prefix: str = "portais"
    default_ttl: int = 0  # 0 = never expire
    max_bytes: int = 0  # 0 = unlimited; per-value quota

    @classmethod
    def from_env(cls) -> "KVConfig":
        """Load config from environment variables."""
        return cls(
            provider=os.getenv("KV_PROVIDER", "file"),
            url=os.getenv("KV_URL", ""),
            token=os.getenv("KV_TOKEN"),
            prefix=os.getenv("KV_PREFIX", "portais"),
            default_ttl=int(os.getenv("KV_TTL_SECONDS", "0")),
            max_bytes=int(os.getenv("KV_MAX_BYTES", "0")),
        )

    def is_configured(self) -> bool:
        """Check if KV store is properly configured."""
        if self.provider == "upstash":
            return bool(self.url and self.token)
        return True


class KVStore(ABC):
    """
    Abstract base class for KV store implementations.

    All methods handle key prefixing internally. set_json raises
    KVCapacityError when the value does not fit; other backend failures
    are logged and reported as False/None.
    """

    def __init__(self, config: KVConfig):
        self.config = config
        self.prefix = config.prefix

    def _prefixed_key(self, key: str) -> str:
        """Add prefix to key to prevent collisions."""
        return f"{self.prefix}:{key}"

    def _encode(self, key: str, value: Dict[str, Any]) -> str:
        """
        Serialize a value, enforcing the configured quota.

        Raises:
            KVCapacityError: encoded value exceeds max_bytes
        """
        payload = json.dumps(value, default=str, ensure_ascii=False)
        limit = self.config.max_bytes
        size = len(payload.encode("utf-8"))
        if limit and size > limit:
            raise KVCapacityError(f"Value for {key} is {size} bytes (limit {limit})")
        return payload

    # =========================================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # =========================================================================

    @abstractmethod
    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get JSON value for key.

        Args:
            key: Key without prefix (prefix added automatically)

        Returns:
            Parsed JSON dict or None if not found
        """
        pass

    @abstractmethod
    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None
    ) -> bool:
        """
        Set JSON value for key with optional TTL.

        Args:
            key: Key without prefix
            value: Dict to store as JSON
            ttl_seconds: Optional TTL (uses default if None)

        Returns:
            True if successful

        Raises:
            KVCapacityError: backend is out of space
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if key existed and was deleted
        """
        pass

    # =========================================================================
    # CONVENIENCE METHODS
    # =========================================================================

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return self.get_json(key) is not None

    def ping(self) -> bool:
        """Backend reachability. Local backends are always up."""
        return True


__all__ = [
    "KVConfig",
    "KVStore",
    "KVStoreError",
    "KVCapacityError",
]
