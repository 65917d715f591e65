"""Secret stores for the stateful token mode."""

from csrfplus.storage.memory import MemoryStore
from csrfplus.storage.protocol import SecretStore
from csrfplus.storage.redis import RedisStore

__all__ = ["MemoryStore", "RedisStore", "SecretStore"]
