# coherence/utils/kv_file.py
"""
Portais KV Store — JSON File Implementation

One JSON file per key under a directory (default: <data_dir>/kv).
Writes go through a temp file and an atomic replace.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .kv_store import KVStore, KVConfig, KVCapacityError

logger = logging.getLogger("portais.kv")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class FileKVStore(KVStore):
    """
    File-backed KVStore.

    config.url, when set, is the storage directory.
    """

    def __init__(self, config: KVConfig, base_dir: Optional[Path] = None):
        super().__init__(config)
        self.base_dir = Path(config.url) if config.url else (base_dir or Path("data") / "kv")
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        name = _UNSAFE_CHARS.sub("_", self._prefixed_key(key))
        return self.base_dir / f"{name}.json"

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("get_json error for %s: %s", key, e)
            return None

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None
    ) -> bool:
        payload = self._encode(key, value)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        with self._lock:
            try:
                with tmp.open("w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, path)
                return True
            except OSError as e:
                if e.errno in _CAPACITY_ERRNOS:
                    raise KVCapacityError(f"No space left writing {key}") from e
                logger.error("set_json error for %s: %s", key, e)
                return False

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False


__all__ = ["FileKVStore"]
