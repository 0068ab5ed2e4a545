"""
Favorites service tests
"""

import uuid
from unittest.mock import Mock

import pytest

from core import AppConfiguration, EventBus, InMemorySettingsStore
from services import (
    FAVORITES_CHANGED,
    FAVORITES_LOADED,
    FavoritesService,
    FavoritesStoreClosed,
    Item,
    ItemCatalog,
)
from tests.conftest import MISSING, U1, U2, FlakySettingsStore


def make_service(catalog, store, config=None, bus=None):
    service = FavoritesService(catalog, store, bus or EventBus(), config or AppConfiguration(settings_backend="memory"))
    service.load()
    return service


class TestFavoritesScenarios:
    """End-to-end scenarios for add/remove with persistence"""

    def test_add_add_remove(self, favorites_service, settings_store, item1, item2):
        assert favorites_service.favorite_item_ids == ()

        favorites_service.add_favorite(item1)
        assert favorites_service.favorite_item_ids == (U1,)
        assert favorites_service.is_favorite(item1)
        assert settings_store.get("favorites") == [str(U1)]

        favorites_service.add_favorite(item2)
        assert favorites_service.favorite_item_ids == (U1, U2)
        assert settings_store.get("favorites") == [str(U1), str(U2)]

        favorites_service.remove_favorite(item1)
        assert favorites_service.favorite_item_ids == (U2,)
        assert not favorites_service.is_favorite(item1)
        assert settings_store.get("favorites") == [str(U2)]

    def test_persisted_id_missing_from_catalog(self, catalog):
        store = InMemorySettingsStore({"favorites": [str(MISSING)]})
        service = make_service(catalog, store)

        assert service.favorite_item_ids == (MISSING,)
        assert service.get_item(MISSING) is None
        assert service.favorite_items() == []
        assert service.dangling_favorite_ids() == [MISSING]
        # Not pruned implicitly
        assert store.get("favorites") == [str(MISSING)]

    def test_persisted_ids_are_lower_case_hyphenated(self, favorites_service, settings_store, item1):
        favorites_service.add_favorite(item1)
        assert settings_store.get("favorites") == ["bf85d038-cb02-494b-8cd2-e665d72b30f4"]

    def test_items_projection_delegates_to_catalog(self, favorites_service, catalog):
        assert favorites_service.items == catalog.items

    def test_get_item(self, favorites_service, item1, item2):
        assert favorites_service.get_item(U1) == item1
        assert favorites_service.get_item(U2) == item2
        assert favorites_service.get_item(MISSING) is None


class TestFavoritesProperties:
    """Round-trip, idempotence and consistency properties"""

    @pytest.mark.parametrize("operations", [
        [],
        [("add", 0)],
        [("add", 1), ("add", 0)],
        [("add", 0), ("add", 1), ("remove", 0), ("add", 0)],
        [("add", 0), ("remove", 0), ("remove", 1), ("add", 1), ("add", 1)],
    ])
    def test_persist_then_reload_preserves_ids_and_order(self, catalog, operations):
        store = InMemorySettingsStore()
        service = make_service(catalog, store)
        items = list(catalog.items)

        for operation, index in operations:
            if operation == "add":
                service.add_favorite(items[index])
            else:
                service.remove_favorite(items[index])

        reloaded = make_service(catalog, store)
        assert reloaded.favorite_item_ids == service.favorite_item_ids
        assert reloaded.load_diagnostics == []

    def test_removing_absent_id_leaves_list_unchanged(self, favorites_service, item1, item2, event_bus):
        favorites_service.add_favorite(item2)
        handler = Mock()
        favorites_service.subscribe(handler)

        result = favorites_service.remove_favorite(item1)

        assert result['success'] is True
        assert result['changed'] is False
        assert favorites_service.favorite_item_ids == (U2,)
        handler.assert_not_called()

    def test_is_favorite_follows_add_and_remove(self, favorites_service, catalog):
        for item in catalog:
            favorites_service.add_favorite(item)
            assert favorites_service.is_favorite(item)
            favorites_service.remove_favorite(item)
            assert not favorites_service.is_favorite(item)

    def test_observers_see_new_state_during_notification(self, favorites_service, item1, item2):
        seen = []

        def on_change(event):
            seen.append((event.get_event_data('action'), favorites_service.favorite_item_ids))

        favorites_service.subscribe(on_change)
        favorites_service.add_favorite(item1)
        favorites_service.add_favorite(item2)
        favorites_service.remove_favorite(item1)

        assert seen == [
            ('added', (U1,)),
            ('added', (U1, U2)),
            ('removed', (U2,)),
        ]


class TestFavoritesNotifications:
    """Test change events and subscriptions"""

    def test_one_event_per_mutation(self, favorites_service, item1):
        handler = Mock()
        favorites_service.subscribe(handler)

        favorites_service.add_favorite(item1)
        assert handler.call_count == 1

        event = handler.call_args[0][0]
        assert event.event_type == FAVORITES_CHANGED
        assert event.data['action'] == 'added'
        assert event.data['item_id'] == U1
        assert event.data['favorite_item_ids'] == (U1,)
        assert event.data['persisted'] is True
        assert event.data['error'] is None

    def test_disposed_subscription_stops_notifications(self, favorites_service, item1):
        handler = Mock()
        subscription = favorites_service.subscribe(handler)

        assert subscription.dispose() is True
        favorites_service.add_favorite(item1)

        handler.assert_not_called()
        assert subscription.active is False

    def test_subscription_as_context_manager(self, favorites_service, item1, item2):
        handler = Mock()
        with favorites_service.subscribe(handler):
            favorites_service.add_favorite(item1)
        favorites_service.add_favorite(item2)

        assert handler.call_count == 1

    def test_failing_observer_does_not_break_mutation(self, favorites_service, item1):
        bad = Mock(side_effect=RuntimeError("boom"))
        good = Mock()
        favorites_service.subscribe(bad)
        favorites_service.subscribe(good)

        result = favorites_service.add_favorite(item1)

        assert result['success'] is True
        assert favorites_service.is_favorite(item1)
        good.assert_called_once()

    def test_load_publishes_loaded_event(self, catalog, event_bus):
        store = InMemorySettingsStore({"favorites": [str(U2)]})
        service = FavoritesService(catalog, store, event_bus, AppConfiguration(settings_backend="memory"))
        handler = Mock()
        service.subscribe(handler)

        service.load()

        event = handler.call_args[0][0]
        assert event.event_type == FAVORITES_LOADED
        assert event.data['favorite_item_ids'] == (U2,)

    def test_stores_with_different_keys_do_not_cross_notify(self, catalog, item1):
        bus = EventBus()
        store = InMemorySettingsStore()
        first = make_service(catalog, store, AppConfiguration(settings_backend="memory", favorites_key="a"), bus)
        second = make_service(catalog, store, AppConfiguration(settings_backend="memory", favorites_key="b"), bus)
        handler = Mock()
        second.subscribe(handler)

        first.add_favorite(item1)

        handler.assert_not_called()
        assert second.favorite_item_ids == ()
        assert store.get("a") == [str(U1)]


class TestFavoritesUniqueness:
    """The store never holds the same id twice"""

    def test_adding_twice_keeps_one_entry(self, favorites_service, settings_store, item1):
        handler = Mock()
        favorites_service.subscribe(handler)

        first = favorites_service.add_favorite(item1)
        second = favorites_service.add_favorite(item1)

        assert first['changed'] is True
        assert second['changed'] is False
        assert second['success'] is True
        assert favorites_service.favorite_item_ids == (U1,)
        assert settings_store.get("favorites") == [str(U1)]
        assert handler.call_count == 1

    def test_same_id_different_item_object_is_duplicate(self, favorites_service, item1):
        favorites_service.add_favorite(item1)
        favorites_service.add_favorite(Item(id=U1, name="renamed copy"))
        assert favorites_service.favorite_item_ids == (U1,)

    def test_toggle(self, favorites_service, item1):
        assert favorites_service.toggle_favorite(item1)['action'] == 'added'
        assert favorites_service.is_favorite(item1)

        assert favorites_service.toggle_favorite(item1)['action'] == 'removed'
        assert not favorites_service.is_favorite(item1)


class TestFavoritesLoading:
    """Test tolerant parsing of persisted identifiers"""

    def test_absent_value_starts_empty(self, favorites_service):
        assert favorites_service.favorite_item_ids == ()
        assert favorites_service.load_diagnostics == []

    def test_malformed_entries_are_skipped(self, catalog):
        store = InMemorySettingsStore({"favorites": [
            "not-a-uuid",
            str(U1).upper(),
            42,
            str(U1),
            str(U2),
        ]})
        service = make_service(catalog, store)

        assert service.favorite_item_ids == (U1, U2)
        assert [(d.index, d.reason) for d in service.load_diagnostics] == [
            (0, "not a valid identifier"),
            (2, "expected a string, got int"),
            (3, "duplicate identifier"),
        ]

    def test_non_list_value_is_reported(self, catalog):
        store = InMemorySettingsStore({"favorites": "bf85d038-cb02-494b-8cd2-e665d72b30f4"})
        service = make_service(catalog, store)

        assert service.favorite_item_ids == ()
        assert len(service.load_diagnostics) == 1
        assert service.load_diagnostics[0].index is None

    def test_upper_case_ids_are_rewritten_lower_case(self, catalog, item2):
        store = InMemorySettingsStore({"favorites": [str(U1).upper()]})
        service = make_service(catalog, store)

        service.add_favorite(item2)

        assert store.get("favorites") == [str(U1), str(U2)]

    @pytest.mark.parametrize("value", [
        "{" + str(U1) + "}",
        "urn:uuid:" + str(U1),
        U1.hex,
    ])
    def test_non_hyphenated_forms_are_rejected(self, catalog, value):
        store = InMemorySettingsStore({"favorites": [value, str(U2)]})
        service = make_service(catalog, store)

        assert service.favorite_item_ids == (U2,)
        assert [(d.index, d.reason) for d in service.load_diagnostics] == [(0, "not in hyphenated form")]

    def test_padded_identifier_is_rejected(self, catalog):
        store = InMemorySettingsStore({"favorites": [" " + str(U1) + " "]})
        service = make_service(catalog, store)

        assert service.favorite_item_ids == ()
        assert len(service.load_diagnostics) == 1

    def test_reads_do_not_load(self, catalog):
        store = InMemorySettingsStore({"favorites": [str(U1)]})
        service = FavoritesService(catalog, store, EventBus())
        handler = Mock()
        service.subscribe(handler)

        assert service.favorite_item_ids == ()
        assert service.favorite_items() == []
        assert service.get_stats()['favorites'] == 0
        assert not service.is_loaded
        handler.assert_not_called()

    def test_toggle_before_load_loads_first(self, catalog, item1):
        store = InMemorySettingsStore({"favorites": [str(U1)]})
        service = FavoritesService(catalog, store, EventBus())

        result = service.toggle_favorite(item1)

        assert result['action'] == 'removed'
        assert store.get("favorites") == []

    def test_mutation_before_load_loads_first(self, catalog, item2):
        store = InMemorySettingsStore({"favorites": [str(U1)]})
        service = FavoritesService(catalog, store, EventBus())

        service.add_favorite(item2)

        assert service.is_loaded
        assert service.favorite_item_ids == (U1, U2)
        assert store.get("favorites") == [str(U1), str(U2)]

    def test_custom_key(self, catalog, item1):
        store = InMemorySettingsStore()
        service = make_service(catalog, store, AppConfiguration(settings_backend="memory", favorites_key="starred"))

        service.add_favorite(item1)

        assert store.get("starred") == [str(U1)]
        assert store.get("favorites") is None


class TestDanglingFavorites:
    """Test the policy for ids missing from the catalog"""

    def test_favorite_items_skip_dangling_ids_in_order(self, catalog, item1, item2):
        store = InMemorySettingsStore({"favorites": [str(U2), str(MISSING), str(U1)]})
        service = make_service(catalog, store)

        assert service.favorite_items() == [item2, item1]
        assert service.favorite_item_ids == (U2, MISSING, U1)

    def test_prune_on_load_when_enabled(self, catalog):
        store = InMemorySettingsStore({"favorites": [str(MISSING), str(U1)]})
        config = AppConfiguration(settings_backend="memory", prune_dangling_on_load=True)
        service = make_service(catalog, store, config)

        assert service.favorite_item_ids == (U1,)
        assert store.get("favorites") == [str(U1)]

    def test_explicit_prune(self, catalog):
        store = InMemorySettingsStore({"favorites": [str(MISSING), str(U1)]})
        service = make_service(catalog, store)
        handler = Mock()
        service.subscribe(handler)

        result = service.prune_dangling()

        assert result['changed'] is True
        assert result['removed'] == [str(MISSING)]
        assert service.favorite_item_ids == (U1,)
        assert store.get("favorites") == [str(U1)]
        assert handler.call_args[0][0].data['action'] == 'pruned'

    def test_prune_without_dangling_ids_is_noop(self, favorites_service, item1):
        favorites_service.add_favorite(item1)
        result = favorites_service.prune_dangling()

        assert result['changed'] is False
        assert result['removed'] == []

    def test_remove_dangling_id_directly(self, catalog):
        store = InMemorySettingsStore({"favorites": [str(MISSING)]})
        service = make_service(catalog, store)

        result = service.remove_favorite_id(MISSING)

        assert result['changed'] is True
        assert service.favorite_item_ids == ()
        assert store.get("favorites") == []


class TestPersistenceFailures:
    """Write failures are reported but never roll back the mutation"""

    def test_failed_write_keeps_in_memory_change(self, favorites_service, settings_store, item1):
        handler = Mock()
        favorites_service.subscribe(handler)
        settings_store.fail_writes = True

        result = favorites_service.add_favorite(item1)

        assert result['success'] is False
        assert result['changed'] is True
        assert result['persisted'] is False
        assert "disk full" in result['error']
        assert favorites_service.is_favorite(item1)
        assert settings_store.get("favorites") is None
        assert handler.call_args[0][0].data['persisted'] is False
        assert favorites_service.last_persistence_error is not None

    def test_next_mutation_retries_write(self, favorites_service, settings_store, item1, item2):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)

        settings_store.fail_writes = False
        favorites_service.add_favorite(item2)

        assert settings_store.get("favorites") == [str(U1), str(U2)]
        assert favorites_service.last_persistence_error is None

    def test_noop_mutation_retries_pending_write(self, favorites_service, settings_store, item1, item2):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)

        settings_store.fail_writes = False
        result = favorites_service.remove_favorite(item2)

        assert result['changed'] is False
        assert result['persisted'] is True
        assert settings_store.get("favorites") == [str(U1)]

    def test_noop_mutation_does_not_write_when_clean(self, favorites_service, settings_store, item1):
        favorites_service.remove_favorite(item1)
        assert settings_store.write_calls == 0

    def test_close_flushes_pending_write(self, favorites_service, settings_store, item1):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)
        settings_store.fail_writes = False

        assert favorites_service.close() is None
        assert settings_store.get("favorites") == [str(U1)]

    def test_stats_count_failures(self, favorites_service, settings_store, item1):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)

        stats = favorites_service.get_stats()

        assert stats['favorites'] == 1
        assert stats['write_failures'] == 1
        assert stats['pending_write'] is True

    def test_reload_keeps_unsaved_change(self, favorites_service, settings_store, item1):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)
        settings_store.fail_writes = False

        assert favorites_service.load() == (U1,)
        assert favorites_service.get_stats()['pending_write'] is False
        favorites_service.close()

        assert settings_store.get("favorites") == [str(U1)]

    def test_reload_while_writes_fail_keeps_in_memory_list(self, favorites_service, settings_store, item1):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)

        assert favorites_service.load() == (U1,)
        assert favorites_service.favorite_item_ids == (U1,)
        assert favorites_service.get_stats()['pending_write'] is True

        settings_store.fail_writes = False
        assert favorites_service.close() is None
        assert settings_store.get("favorites") == [str(U1)]

    def test_successful_retry_notifies_observers(self, favorites_service, settings_store, item1, item2):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)
        handler = Mock()
        favorites_service.subscribe(handler)

        settings_store.fail_writes = False
        favorites_service.remove_favorite(item2)

        assert handler.call_count == 1
        event = handler.call_args[0][0]
        assert event.data['action'] == 'saved'
        assert event.data['persisted'] is True
        assert event.data['favorite_item_ids'] == (U1,)

    def test_failed_retry_publishes_nothing(self, favorites_service, settings_store, item1, item2):
        settings_store.fail_writes = True
        favorites_service.add_favorite(item1)
        handler = Mock()
        favorites_service.subscribe(handler)

        result = favorites_service.remove_favorite(item2)

        assert result['persisted'] is False
        handler.assert_not_called()


class TestFavoritesLifecycle:
    """Test close semantics"""

    def test_mutations_after_close_raise(self, favorites_service, item1):
        favorites_service.close()

        with pytest.raises(FavoritesStoreClosed):
            favorites_service.add_favorite(item1)
        with pytest.raises(FavoritesStoreClosed):
            favorites_service.remove_favorite(item1)

    def test_queries_after_close_still_work(self, favorites_service, item1):
        favorites_service.add_favorite(item1)
        favorites_service.close()

        assert favorites_service.is_closed
        assert favorites_service.is_favorite(item1)
        assert favorites_service.get_item(U1) == item1

    def test_close_is_idempotent(self, favorites_service, settings_store):
        assert favorites_service.close() is None
        assert favorites_service.close() is None
        assert settings_store.write_calls == 0

    def test_state_survives_restart(self, catalog, item1, item2):
        store = FlakySettingsStore()
        first = make_service(catalog, store)
        first.add_favorite(item2)
        first.add_favorite(item1)
        first.close()

        second = make_service(catalog, store)
        assert second.favorite_item_ids == (U2, U1)
        assert [item.id for item in second.favorite_items()] == [U2, U1]

    def test_random_ids_round_trip(self):
        items = [Item(id=uuid.uuid4(), name=f"n{i}") for i in range(5)]
        catalog = ItemCatalog(items)
        store = InMemorySettingsStore()
        service = make_service(catalog, store)
        for item in reversed(items):
            service.add_favorite(item)

        assert make_service(catalog, store).favorite_item_ids == tuple(item.id for item in reversed(items))
