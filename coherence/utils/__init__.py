# coherence/utils/__init__.py
"""
Portais Utils Subpackage

Storage backends for coherence state:
- kv_store: KVStore protocol, KVConfig, errors
- kv_factory: provider selection + singleton
- kv_file / kv_memory: local backends
- kv_upstash: Upstash Redis (optional SDK, imported lazily by the factory)
"""

from .kv_store import (
    KVConfig,
    KVStore,
    KVStoreError,
    KVCapacityError,
)
from .kv_factory import (
    create_kv_store,
    get_kv_store,
    reset_kv_store,
    is_kv_configured,
)
from .kv_file import FileKVStore
from .kv_memory import MemoryKVStore
