from .key_value_store import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore
from .secret_store import InMemorySecretStore, SecretStore, SqlSecretStore

__all__ = [
    "InMemoryKeyValueStore",
    "InMemorySecretStore",
    "KeyValueStore",
    "SecretStore",
    "SqlKeyValueStore",
    "SqlSecretStore",
]
