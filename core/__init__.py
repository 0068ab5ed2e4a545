"""
Core Infrastructure for the favorites app

Provides the foundational pieces the favorites store is built on.

Key Components:
- ServiceRegistry: Dependency injection container for all services
- ConfigurationManager: Configuration from YAML, .env and environment variables
- EventBus: Synchronous publish/subscribe with disposable subscriptions
- SettingsStore: Durable key-value settings with in-memory, JSON and SQLite backends
"""

from .service_registry import (
    ServiceRegistry,
    ServiceLifetime,
    ServiceNotFound,
    CircularDependencyError,
    ServiceConfigurationError,
)
from .config_manager import AppConfiguration, ConfigurationManager, ConfigurationError, Environment
from .event_bus import EventBus, Event, EventPriority, Subscription
from .settings_store import (
    SettingsStore,
    SettingsStoreError,
    SettingsWriteError,
    InMemorySettingsStore,
    JsonFileSettingsStore,
    SqliteSettingsStore,
    create_settings_store,
)
from .logging_setup import configure_logging

__all__ = [
    'ServiceRegistry',
    'ServiceLifetime',
    'ServiceNotFound',
    'CircularDependencyError',
    'ServiceConfigurationError',
    'AppConfiguration',
    'ConfigurationManager',
    'ConfigurationError',
    'Environment',
    'EventBus',
    'Event',
    'EventPriority',
    'Subscription',
    'SettingsStore',
    'SettingsStoreError',
    'SettingsWriteError',
    'InMemorySettingsStore',
    'JsonFileSettingsStore',
    'SqliteSettingsStore',
    'create_settings_store',
    'configure_logging',
]
