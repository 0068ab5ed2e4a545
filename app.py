"""
Favorites Example - items list with a persisted favorites sub-list

Usage:
    python app.py [NAME_OR_ID ...]

Each argument toggles the favorite state of the matching item (by display
name or id). The item list and the favorites list are printed afterwards.

Environment Variables:
    FAVORITES_ENVIRONMENT - development, testing or production (default: development)
    FAVORITES_SETTINGS_BACKEND - memory, json or sqlite (default: json)
    FAVORITES_SETTINGS_PATH - settings file for json/sqlite backends
    FAVORITES_PRUNE_DANGLING - drop favorites missing from the catalog on load
    LOG_LEVEL - Logging level (default: INFO)
    LOG_FILE_PATH - Rotating log file (default: console only)
"""

import logging
import sys
import uuid
from typing import List, Optional

from core import ConfigurationError, SettingsStoreError
from services import FavoritesService, Item, create_application

logger = logging.getLogger('favorites.app')

def resolve_item(favorites: FavoritesService, token: str) -> Optional[Item]:
    """Find an item by id or display name"""
    try:
        item = favorites.get_item(uuid.UUID(token))
        if item is not None:
            return item
    except ValueError:
        pass
    return favorites.catalog.find_by_name(token)

def render(favorites: FavoritesService) -> List[str]:
    """Text rendering of the items list and the favorites list"""
    lines = ["Items:"]
    for item in favorites.items:
        marker = "*" if favorites.is_favorite(item) else " "
        lines.append(f"  [{marker}] {item.name}")

    lines.append("Favorites:")
    favorite_items = favorites.favorite_items()
    if not favorite_items:
        lines.append("  (none)")
    for item in favorite_items:
        lines.append(f"  {item.name}")
    return lines

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = sys.argv[1:] if argv is None else argv

    try:
        with create_application() as app:
            favorites = app.favorites

            for token in args:
                item = resolve_item(favorites, token)
                if item is None:
                    logger.warning(f"No item matches '{token}'")
                    continue
                result = favorites.toggle_favorite(item)
                if not result['success']:
                    logger.error(f"Could not save favorites: {result['error']}")

            print("\n".join(render(favorites)))

    except (ConfigurationError, SettingsStoreError) as e:
        logger.error(f"Application failed to start: {e}")
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
