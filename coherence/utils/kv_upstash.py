# coherence/utils/kv_upstash.py
"""
Portais KV Store — Upstash Redis Implementation

Uses the Upstash REST API via upstash-redis SDK.

Install: pip install upstash-redis
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from .kv_store import KVStore, KVConfig, KVCapacityError

# Refusals caused by stored size or memory. Rate and request-count limits
# ("max daily request limit exceeded") are not capacity problems.
_OOM_PATTERN = re.compile(r"\bOOM\b")
_CAPACITY_MARKERS = ("maxmemory", "max request size", "max database size")


def _is_capacity_error(error: Exception) -> bool:
    message = str(error)
    if _OOM_PATTERN.search(message):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _CAPACITY_MARKERS)


class UpstashKVStore(KVStore):
    """
    Upstash Redis implementation of KVStore.

    Uses Upstash's REST API which is serverless-friendly.
    """

    def __init__(self, config: KVConfig, client: Any = None):
        super().__init__(config)
        self._client = client
        if self._client is None:
            self._init_client()

    def _init_client(self) -> None:
        """Initialize Upstash Redis client."""
        try:
            from upstash_redis import Redis

            self._client = Redis(
                url=self.config.url,
                token=self.config.token,
            )
            print(f"[KV:Upstash] Connected to {self.config.url[:30]}...", flush=True)

        except ImportError:
            raise ImportError(
                "upstash-redis package not installed. "
                "Install with: pip install upstash-redis"
            )
        except Exception as e:
            print(f"[KV:Upstash] Connection error: {e}", flush=True)
            raise

    @property
    def client(self):
        """Get the Upstash Redis client."""
        if self._client is None:
            self._init_client()
        return self._client

    # =========================================================================
    # KVStore Implementation
    # =========================================================================

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Get JSON value for key."""
        try:
            prefixed = self._prefixed_key(key)
            value = self.client.get(prefixed)

            if value is None:
                return None

            # Upstash may return string or already parsed dict
            if isinstance(value, dict):
                return value
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            if isinstance(value, str):
                return json.loads(value)

            return None

        except Exception as e:
            print(f"[KV:Upstash] get_json error for {key}: {e}", flush=True)
            return None

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None
    ) -> bool:
        """Set JSON value for key with optional TTL."""
        json_str = self._encode(key, value)
        try:
            prefixed = self._prefixed_key(key)
            ttl = ttl_seconds or self.config.default_ttl

            if ttl > 0:
                self.client.setex(prefixed, ttl, json_str)
            else:
                self.client.set(prefixed, json_str)

            return True

        except Exception as e:
            if _is_capacity_error(e):
                raise KVCapacityError(str(e)) from e
            print(f"[KV:Upstash] set_json error for {key}: {e}", flush=True)
            return False

    def delete(self, key: str) -> bool:
        """Delete a key."""
        try:
            prefixed = self._prefixed_key(key)
            result = self.client.delete(prefixed)
            return result > 0

        except Exception as e:
            print(f"[KV:Upstash] delete error for {key}: {e}", flush=True)
            return False

    def ping(self) -> bool:
        """Test connection to Upstash."""
        try:
            result = self.client.ping()
            return result == "PONG" or result is True
        except Exception as e:
            print(f"[KV:Upstash] ping error: {e}", flush=True)
            return False


__all__ = ["UpstashKVStore"]
