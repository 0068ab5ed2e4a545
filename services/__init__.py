"""
Favorites Services Package

Domain services: the item catalog, the favorites store and the
application wiring around them.
"""

from .item_catalog import Item, ItemCatalog, SAMPLE_ITEMS, create_sample_catalog
from .favorites_service import (
    FavoritesService,
    FavoritesStoreClosed,
    LoadDiagnostic,
    FAVORITES_CHANGED,
    FAVORITES_LOADED,
)
from .application import FavoritesApplication, create_application

__all__ = [
    'Item',
    'ItemCatalog',
    'SAMPLE_ITEMS',
    'create_sample_catalog',
    'FavoritesService',
    'FavoritesStoreClosed',
    'LoadDiagnostic',
    'FAVORITES_CHANGED',
    'FAVORITES_LOADED',
    'FavoritesApplication',
    'create_application',
]
