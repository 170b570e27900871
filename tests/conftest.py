"""
Shared test fixtures.

Object stores are SQLite files under ``tmp_path``, so every session opens its
own connection like the real backends do. Key-value stores, the secret store
and the remote source are in memory.
"""

from typing import List

import pytest
from sqlalchemy.orm import Session

from acrostic_core.config import AppConfig, CacheConfig, StorageConfig, SyncConfig
from acrostic_core.constants import PreferenceKey, StorageLocation
from acrostic_core.container import AppContainer
from acrostic_core.db import DatabaseConfig
from acrostic_core.remote.in_memory import InMemoryRemoteSource
from acrostic_core.storage import LocalStorageBackend, StorageManager, SyncedStorageBackend
from acrostic_core.stores import InMemoryKeyValueStore, InMemorySecretStore
from tests.fixtures.builders import FakeClock
from tests.fixtures.factories import bind_factories

# ==================== STORE FIXTURES ====================


@pytest.fixture
def local_db_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig.from_url(f"sqlite:///{tmp_path / 'local.db'}")


@pytest.fixture
def synced_db_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig.from_url(f"sqlite:///{tmp_path / 'synced.db'}")


@pytest.fixture
def local_backend(local_db_config):
    backend = LocalStorageBackend(local_db_config)
    backend.initialize()
    yield backend
    backend.close()


@pytest.fixture
def synced_backend(synced_db_config):
    """Cloud backend, configured but not yet opened."""
    backend = SyncedStorageBackend(synced_db_config)
    yield backend
    backend.close()


@pytest.fixture
def db_session(local_backend):
    """Session on the local store with the model factories bound to it."""
    session: Session = local_backend.db_manager.get_session()
    bind_factories(session)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def preferences() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(
        {PreferenceKey.STORAGE_LOCATION.value: StorageLocation.LOCAL.value}
    )


@pytest.fixture
def shared_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def remote() -> InMemoryRemoteSource:
    return InMemoryRemoteSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ==================== CONFIGURATION FIXTURES ====================


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(
        local_store_url="sqlite://",
        synced_store_url="",
        cloud_init_timeout_seconds=1.0,
        secret_store_timeout_seconds=1.0,
    )


@pytest.fixture
def app_config(storage_config) -> AppConfig:
    return AppConfig(
        environment="test",
        storage=storage_config,
        cache=CacheConfig(),
        sync=SyncConfig(record_queries=True),
    )


# ==================== SERVICE FIXTURES ====================


@pytest.fixture
async def storage(local_backend, synced_backend, preferences, storage_config) -> StorageManager:
    """Started storage manager with the local backend active."""
    manager = StorageManager(local_backend, synced_backend, preferences, storage_config)
    await manager.start()
    return manager


@pytest.fixture
def reload_calls() -> List[int]:
    return []


@pytest.fixture
async def container(
    app_config,
    local_backend,
    synced_backend,
    secret_store,
    shared_store,
    preferences,
    remote,
    clock,
    reload_calls,
):
    """Started container on the local backend with in-memory collaborators."""
    app = AppContainer(
        config=app_config,
        local=local_backend,
        synced=synced_backend,
        secret_store=secret_store,
        shared_store=shared_store,
        preferences=preferences,
        remote=remote,
        reload_signal=lambda: reload_calls.append(1),
        clock=clock,
    )
    await app.start()
    yield app
    await app.close()
