"""
Shared fixtures for the favorites test suite
"""

import uuid

import pytest

from core import AppConfiguration, EventBus, InMemorySettingsStore, SettingsWriteError
from services import FavoritesService, Item, ItemCatalog

U1 = uuid.UUID("bf85d038-cb02-494b-8cd2-e665d72b30f4")
U2 = uuid.UUID("923fda1b-d58d-4aec-b279-a7bf21b5b354")
MISSING = uuid.UUID("00000000-0000-4000-8000-000000000001")


class FlakySettingsStore(InMemorySettingsStore):
    """In-memory store whose writes can be switched to fail"""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False
        self.write_calls = 0

    def set(self, key, value):
        self.write_calls += 1
        if self.fail_writes:
            raise SettingsWriteError(key, "disk full")
        super().set(key, value)


@pytest.fixture
def item1():
    return Item(id=U1, name="item1")


@pytest.fixture
def item2():
    return Item(id=U2, name="item2")


@pytest.fixture
def catalog(item1, item2):
    return ItemCatalog([item1, item2])


@pytest.fixture
def settings_store():
    return FlakySettingsStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def config():
    return AppConfiguration(settings_backend="memory")


@pytest.fixture
def favorites_service(catalog, settings_store, event_bus, config):
    service = FavoritesService(catalog, settings_store, event_bus, config)
    service.load()
    return service
