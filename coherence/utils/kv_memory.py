# coherence/utils/kv_memory.py
"""
Portais KV Store — In-Memory Implementation

Process-local dict. Used by tests and ephemeral runs. Honors max_bytes so
storage pressure can be exercised without a real backend.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, Optional

from .kv_store import KVStore, KVConfig


class MemoryKVStore(KVStore):

    def __init__(self, config: Optional[KVConfig] = None):
        super().__init__(config or KVConfig(provider="memory"))
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._data.get(self._prefixed_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None
    ) -> bool:
        # TTL is ignored; entries live as long as the process
        payload = self._encode(key, value)
        with self._lock:
            self._data[self._prefixed_key(key)] = payload
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(self._prefixed_key(key), None) is not None

    def size_of(self, key: str) -> int:
        """Stored size in bytes (0 if missing)."""
        with self._lock:
            raw = self._data.get(self._prefixed_key(key))
        return len(raw.encode("utf-8")) if raw else 0


__all__ = ["MemoryKVStore"]
