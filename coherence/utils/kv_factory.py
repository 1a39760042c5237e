# coherence/utils/kv_factory.py
"""
Portais KV Store Factory — v1.0.0

Returns the appropriate KVStore implementation based on KV_PROVIDER env var.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .kv_store import KVStore, KVConfig


# Singleton instance
_kv_instance: Optional[KVStore] = None


def create_kv_store(config: KVConfig, data_dir: Optional[Path] = None) -> KVStore:
    """
    Build a KVStore for `config` (no caching).

    Raises:
        ValueError: If provider is unknown or not configured
        ImportError: If required SDK is not installed
    """
    if not config.is_configured():
        raise ValueError(
            "KV store not configured. Set KV_URL and KV_TOKEN environment variables."
        )

    provider = config.provider.lower()

    if provider == "file":
        from .kv_file import FileKVStore
        base_dir = Path(data_dir) / "kv" if data_dir else None
        return FileKVStore(config, base_dir=base_dir)

    if provider == "memory":
        from .kv_memory import MemoryKVStore
        return MemoryKVStore(config)

    if provider == "upstash":
        from .kv_upstash import UpstashKVStore
        return UpstashKVStore(config)

    raise ValueError(
        f"Unknown KV provider: {provider}. "
        f"Supported: file, memory, upstash"
    )


def get_kv_store(config: Optional[KVConfig] = None, data_dir: Optional[Path] = None) -> KVStore:
    """
    Get or create the KV store singleton.

    Args:
        config: Optional config (uses env vars if not provided)
        data_dir: Base directory for the file provider

    Returns:
        KVStore instance
    """
    global _kv_instance

    if _kv_instance is not None:
        return _kv_instance

    if config is None:
        config = KVConfig.from_env()

    _kv_instance = create_kv_store(config, data_dir)
    return _kv_instance


def reset_kv_store() -> None:
    """Reset the singleton (for testing)."""
    global _kv_instance
    _kv_instance = None


def is_kv_configured() -> bool:
    """Check if KV store is configured via environment."""
    config = KVConfig.from_env()
    return config.is_configured()


__all__ = [
    "create_kv_store",
    "get_kv_store",
    "reset_kv_store",
    "is_kv_configured",
]
