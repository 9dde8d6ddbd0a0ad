"""
Shared pytest fixtures for askbridge tests.
"""

import pytest


@pytest.fixture
def tmp_config(tmp_path):
    """A Config instance using tmp_path as base_dir."""
    from askbridge.config import Config
    return Config(base_dir=tmp_path)


@pytest.fixture
def memory_store():
    """An empty in-memory document store."""
    from askbridge.core.store import MemoryDocumentStore
    return MemoryDocumentStore()


@pytest.fixture
def surface():
    """A surface that records every posted event."""
    from askbridge.core.surface import RecordingSurface
    return RecordingSurface()


@pytest.fixture
def make_broker(memory_store):
    """Factory for a broker over the in-memory store (short debounce)."""
    from askbridge.core.broker import RequestBroker

    def _make(**kwargs):
        kwargs.setdefault("debounce", 0.01)
        return RequestBroker(memory_store, **kwargs)

    return _make


@pytest.fixture
def flaky_store():
    """A memory store whose reads and writes fail until `failing` is cleared."""
    from askbridge.core.errors import PersistenceError
    from askbridge.core.store import MemoryDocumentStore

    class FlakyStore(MemoryDocumentStore):
        failing = True

        def read(self, name):
            if self.failing:
                raise PersistenceError("disk on fire")
            return super().read(name)

        def write(self, name, data):
            if self.failing:
                raise PersistenceError("disk full")
            super().write(name, data)

    return FlakyStore()
