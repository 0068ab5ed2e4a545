"""
Favorites Service for the favorites app
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Tuple, Callable

from core import AppConfiguration, EventBus, EventPriority, SettingsStore, SettingsWriteError, Subscription
from core.event_bus import Event
from .item_catalog import Item, ItemCatalog

logger = logging.getLogger('favorites.services.favorites_service')

FAVORITES_CHANGED = 'favorites_changed'
FAVORITES_LOADED = 'favorites_loaded'

class FavoritesStoreClosed(Exception):
    """Raised when a mutation is attempted after close()"""
    pass

@dataclass(frozen=True)
class LoadDiagnostic:
    """A persisted entry that was skipped while loading"""
    index: Optional[int]
    value: Any
    reason: str

def parse_identifier(value: Any) -> Tuple[Optional[uuid.UUID], Optional[str]]:
    """
    Parse a persisted identifier.

    Returns (uuid, None) on success and (None, reason) otherwise. Only the
    hyphenated form is accepted, in either case; braces, urn prefixes, bare
    hex and surrounding whitespace are rejected.
    """
    if not isinstance(value, str):
        return None, f"expected a string, got {type(value).__name__}"
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        return None, "not a valid identifier"
    if str(parsed) != value.lower():
        return None, "not in hyphenated form"
    return parsed, None

def format_identifier(item_id: uuid.UUID) -> str:
    """Canonical lower-case hyphenated form used for persistence"""
    return str(item_id)

class FavoritesService:
    """
    Favorites management service.

    Owns the ordered list of favorite item ids, persists it to the settings
    store after every mutation and publishes a change event on the event
    bus once the in-memory state has been updated.
    """

    def __init__(
        self,
        catalog: ItemCatalog,
        settings_store: SettingsStore,
        event_bus: EventBus,
        config: Optional[AppConfiguration] = None
    ):
        self.catalog = catalog
        self.settings_store = settings_store
        self.event_bus = event_bus
        self.config = config or AppConfiguration()
        self.favorites_key = self.config.favorites_key

        self._favorite_ids: List[uuid.UUID] = []
        self._source = f"favorites_service.{self.favorites_key}"
        self._loaded = False
        self._closed = False
        self._dirty = False  # last write failed, the settings value is stale
        self._write_failures = 0

        self.load_diagnostics: List[LoadDiagnostic] = []
        self.last_persistence_error: Optional[str] = None

        logger.debug("FavoritesService created")

    @property
    def items(self) -> Tuple[Item, ...]:
        return self.catalog.items

    @property
    def favorite_item_ids(self) -> Tuple[uuid.UUID, ...]:
        """Favorite ids in order; empty until load() has run"""
        return tuple(self._favorite_ids)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_closed(self) -> bool:
        return self._closed

    def load(self) -> Tuple[uuid.UUID, ...]:
        """
        Load the persisted favorite ids from the settings store.

        Malformed entries are skipped and recorded in ``load_diagnostics``;
        a repeated id is kept once. When ``prune_dangling_on_load`` is set,
        ids missing from the catalog are dropped and the list is written back.

        Returns:
            The loaded favorite ids
        """
        if self._loaded and self._dirty:
            # Reading now would discard the unsaved list
            if self._save_favorites() is not None:
                logger.warning("Pending favorites could not be written, keeping them instead of reloading")
                return tuple(self._favorite_ids)

        raw = self.settings_store.get(self.favorites_key)
        diagnostics: List[LoadDiagnostic] = []
        favorite_ids: List[uuid.UUID] = []

        if raw is None:
            logger.debug(f"No persisted favorites under '{self.favorites_key}'")
        elif not isinstance(raw, list):
            diagnostics.append(LoadDiagnostic(None, raw, "expected a list of identifiers"))
        else:
            seen = set()
            for index, value in enumerate(raw):
                parsed, reason = parse_identifier(value)
                if parsed is None:
                    diagnostics.append(LoadDiagnostic(index, value, reason))
                    continue
                if parsed in seen:
                    diagnostics.append(LoadDiagnostic(index, value, "duplicate identifier"))
                    continue
                seen.add(parsed)
                favorite_ids.append(parsed)

        for diagnostic in diagnostics:
            logger.warning(
                f"Skipping persisted favorite at index {diagnostic.index}: "
                f"{diagnostic.value!r} ({diagnostic.reason})"
            )

        self._favorite_ids = favorite_ids
        self.load_diagnostics = diagnostics
        self._loaded = True

        pruned: List[uuid.UUID] = []
        error = None
        if self.config.prune_dangling_on_load:
            pruned = self._drop_dangling()
            if pruned:
                error = self._save_favorites()

        self.event_bus.emit(
            FAVORITES_LOADED,
            source=self._source,
            favorite_item_ids=tuple(self._favorite_ids),
            diagnostics=tuple(diagnostics),
            pruned=tuple(pruned),
            persisted=error is None,
            error=error
        )

        logger.info(
            f"Loaded {len(self._favorite_ids)} favorites "
            f"({len(diagnostics)} skipped, {len(pruned)} pruned)"
        )
        return tuple(self._favorite_ids)

    def add_favorite(self, item: Item) -> Dict[str, Any]:
        """
        Mark an item as favorite.

        Adding an item that is already a favorite changes nothing and
        publishes no event.

        Returns:
            Result dictionary with success, changed and persisted flags
        """
        self._ensure_open()
        self._ensure_loaded()

        if item.id in self._favorite_ids:
            logger.debug(f"Item {item.id} is already a favorite")
            return self._unchanged_result('added', item.id)

        self._favorite_ids.append(item.id)
        error = self._save_favorites()
        self._publish_change('added', item.id, error)

        logger.info(f"Added favorite {item.name} ({item.id})")
        return self._result('added', item.id, changed=True, error=error)

    def remove_favorite(self, item: Item) -> Dict[str, Any]:
        """Unmark an item. Removing a non-favorite is a no-op."""
        return self.remove_favorite_id(item.id)

    def remove_favorite_id(self, item_id: uuid.UUID) -> Dict[str, Any]:
        """
        Remove a favorite by id, including ids that no longer resolve in
        the catalog.
        """
        self._ensure_open()
        self._ensure_loaded()

        if item_id not in self._favorite_ids:
            logger.debug(f"Item {item_id} is not a favorite")
            return self._unchanged_result('removed', item_id)

        self._favorite_ids.remove(item_id)
        error = self._save_favorites()
        self._publish_change('removed', item_id, error)

        logger.info(f"Removed favorite {item_id}")
        return self._result('removed', item_id, changed=True, error=error)

    def toggle_favorite(self, item: Item) -> Dict[str, Any]:
        """Remove the item if it is a favorite, add it otherwise."""
        self._ensure_open()
        self._ensure_loaded()
        if self.is_favorite(item):
            return self.remove_favorite(item)
        return self.add_favorite(item)

    def is_favorite(self, item: Item) -> bool:
        return item.id in self._favorite_ids

    def get_item(self, item_id: uuid.UUID) -> Optional[Item]:
        return self.catalog.find(item_id)

    def favorite_items(self) -> List[Item]:
        """
        Resolve the favorites in display order.

        Ids without a catalog entry are skipped; they stay in the list
        until removed or pruned.
        """
        resolved = []
        for item_id in self.favorite_item_ids:
            item = self.catalog.find(item_id)
            if item is None:
                logger.debug(f"Skipping dangling favorite {item_id}")
                continue
            resolved.append(item)
        return resolved

    def dangling_favorite_ids(self) -> List[uuid.UUID]:
        return [item_id for item_id in self.favorite_item_ids if item_id not in self.catalog]

    def prune_dangling(self) -> Dict[str, Any]:
        """
        Drop favorite ids that do not resolve in the catalog.

        Returns:
            Result dictionary; 'removed' lists the pruned ids
        """
        self._ensure_open()
        self._ensure_loaded()

        removed = self._drop_dangling()
        if not removed:
            result = self._unchanged_result('pruned', None)
            result['removed'] = []
            return result

        error = self._save_favorites()
        self._publish_change('pruned', None, error, removed=tuple(removed))

        logger.info(f"Pruned {len(removed)} dangling favorites")
        result = self._result('pruned', None, changed=True, error=error)
        result['removed'] = [format_identifier(item_id) for item_id in removed]
        return result

    def subscribe(
        self,
        handler: Callable[[Event], Any],
        priority: EventPriority = EventPriority.NORMAL
    ) -> Subscription:
        """
        Subscribe to change and load notifications of this store.

        Returns:
            Subscription handle; dispose it to stop receiving events
        """
        return self.event_bus.subscribe(
            [FAVORITES_CHANGED, FAVORITES_LOADED],
            handler,
            priority=priority,
            filter_func=lambda event: event.source == self._source
        )

    def close(self) -> Optional[str]:
        """
        Flush pending state and stop accepting mutations.

        Returns:
            Error message if the final write failed, else None
        """
        if self._closed:
            return None

        error = None
        if self._dirty:
            logger.info("Flushing favorites on close")
            error = self._retry_pending_write()

        self._closed = True
        logger.info("FavoritesService closed")
        return error

    def get_stats(self) -> Dict[str, Any]:
        """Get favorites statistics"""
        return {
            'favorites': len(self.favorite_item_ids),
            'dangling': len(self.dangling_favorite_ids()),
            'catalog_items': len(self.catalog),
            'load_diagnostics': len(self.load_diagnostics),
            'write_failures': self._write_failures,
            'pending_write': self._dirty,
            'closed': self._closed
        }

    def _save_favorites(self) -> Optional[str]:
        """
        Write the current list to the settings store.

        A failed write keeps the in-memory state and marks the store dirty
        so the next mutation or close() writes again.
        """
        values = [format_identifier(item_id) for item_id in self._favorite_ids]

        try:
            self.settings_store.set(self.favorites_key, values)
        except SettingsWriteError as e:
            self._dirty = True
            self._write_failures += 1
            self.last_persistence_error = str(e)
            logger.error(f"Failed to persist favorites: {e}")
            return str(e)

        self._dirty = False
        self.last_persistence_error = None
        logger.debug(f"Persisted {len(values)} favorites")
        return None

    def _retry_pending_write(self) -> Optional[str]:
        """Write the pending list; observers hear about it once it lands."""
        error = self._save_favorites()
        if error is None:
            self._publish_change('saved', None, None)
        return error

    def _drop_dangling(self) -> List[uuid.UUID]:
        removed = [item_id for item_id in self._favorite_ids if item_id not in self.catalog]
        if removed:
            self._favorite_ids = [item_id for item_id in self._favorite_ids if item_id in self.catalog]
        return removed

    def _publish_change(self, action: str, item_id: Optional[uuid.UUID], error: Optional[str], **extra):
        self.event_bus.emit(
            FAVORITES_CHANGED,
            source=self._source,
            action=action,
            item_id=item_id,
            favorite_item_ids=tuple(self._favorite_ids),
            persisted=error is None,
            error=error,
            **extra
        )

    def _unchanged_result(self, action: str, item_id: Optional[uuid.UUID]) -> Dict[str, Any]:
        # Nothing changed, but retry a write that failed earlier
        error = self._retry_pending_write() if self._dirty else None
        return self._result(action, item_id, changed=False, error=error)

    def _result(self, action: str, item_id: Optional[uuid.UUID], changed: bool, error: Optional[str]) -> Dict[str, Any]:
        return {
            'success': error is None,
            'action': action,
            'changed': changed,
            'persisted': error is None,
            'item_id': format_identifier(item_id) if item_id is not None else None,
            'error': error
        }

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    def _ensure_open(self):
        if self._closed:
            raise FavoritesStoreClosed("FavoritesService is closed")
