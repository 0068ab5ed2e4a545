"""
Favorites Application
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional

from core import (
    AppConfiguration,
    ConfigurationManager,
    EventBus,
    ServiceLifetime,
    ServiceRegistry,
    SettingsStore,
    configure_logging,
    create_settings_store,
)
from .favorites_service import FavoritesService
from .item_catalog import ItemCatalog, create_sample_catalog

logger = logging.getLogger('favorites.services.application')

class FavoritesApplication:
    """
    Wires the catalog, settings store, event bus and favorites service
    together and owns their lifecycle.

    The favorites service is an explicit instance reached through the
    service registry; nothing is kept in module globals.
    """

    def __init__(
        self,
        service_registry: Optional[ServiceRegistry] = None,
        config: Optional[AppConfiguration] = None,
        catalog: Optional[ItemCatalog] = None,
        settings_store: Optional[SettingsStore] = None,
        base_path: Optional[Path] = None
    ):
        self.service_registry = service_registry or ServiceRegistry()
        self._config = config
        self._catalog = catalog
        self._settings_store = settings_store
        self._base_path = base_path
        self._initialized = False

    @property
    def favorites(self) -> FavoritesService:
        return self.service_registry.get(FavoritesService)

    @property
    def config(self) -> AppConfiguration:
        return self.service_registry.get(AppConfiguration)

    def initialize(self) -> FavoritesService:
        """Register services, configure logging and load favorites"""
        if self._initialized:
            return self.favorites

        logger.info("Initializing FavoritesApplication services...")

        self._register_core_services()
        self._register_business_services()

        configure_logging(self.config)

        favorites = self.favorites
        favorites.load()

        self._initialized = True
        logger.info("FavoritesApplication initialized")
        return favorites

    def shutdown(self) -> None:
        """Flush favorites and release the settings backend"""
        if not self._initialized:
            return

        logger.info("Shutting down FavoritesApplication...")

        error = self.favorites.close()
        if error:
            logger.error(f"Favorites could not be flushed on shutdown: {error}")

        self.service_registry.get(SettingsStore).close()
        self._initialized = False
        logger.info("FavoritesApplication shutdown complete")

    def __enter__(self) -> 'FavoritesApplication':
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def _register_core_services(self) -> None:
        """Register core infrastructure services"""
        registry = self.service_registry
        registry.register_instance(ServiceRegistry, registry)

        if self._config is not None:
            registry.register_instance(AppConfiguration, self._config)
        else:
            config_manager = ConfigurationManager(base_path=self._base_path)
            registry.register_instance(ConfigurationManager, config_manager)
            registry.register_instance(AppConfiguration, config_manager.load_configuration())

        registry.register(EventBus, lifetime=ServiceLifetime.SINGLETON)

        if self._settings_store is not None:
            registry.register_instance(SettingsStore, self._settings_store)
        else:
            registry.register(SettingsStore, factory=create_settings_store)

        logger.debug("Core services registered")

    def _register_business_services(self) -> None:
        """Register catalog and favorites services"""
        registry = self.service_registry

        if self._catalog is not None:
            registry.register_instance(ItemCatalog, self._catalog)
        else:
            registry.register(ItemCatalog, factory=create_sample_catalog)

        registry.register(FavoritesService, lifetime=ServiceLifetime.SINGLETON)
        logger.debug("Business services registered")

    def get_service_stats(self) -> Dict[str, Any]:
        """Get statistics about all registered services"""
        registered_services = self.service_registry.get_registered_services()

        service_stats = {}
        for service_type, service_def in registered_services.items():
            service_stats[service_type.__name__] = {
                'lifetime': service_def.lifetime.value,
                'has_instance': service_def.instance is not None
            }

        return {
            'total_services': len(registered_services),
            'initialized': self._initialized,
            'services': service_stats
        }

def create_application(
    config: Optional[AppConfiguration] = None,
    catalog: Optional[ItemCatalog] = None,
    settings_store: Optional[SettingsStore] = None,
    base_path: Optional[Path] = None
) -> FavoritesApplication:
    """Create a new FavoritesApplication with optional overrides"""
    return FavoritesApplication(
        ServiceRegistry(),
        config=config,
        catalog=catalog,
        settings_store=settings_store,
        base_path=base_path
    )
