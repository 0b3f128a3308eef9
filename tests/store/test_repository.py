#!/usr/bin/env python3
"""Tests for the concurrency-safe ConfigurationStore."""

import threading

import pytest

from lingomirror.core.validators import ValidationError
from lingomirror.store.models import LdapGroupMapping, Mirror, SyncStatus
from lingomirror.store.persistence import MemoryDocumentStore, PersistenceError
from lingomirror.store.repository import ConfigurationStore, RemoveOutcome


def _mirror(source_id: str = "src-movies", name: str = "Movies") -> Mirror:
    return Mirror(
        source_library_id=source_id,
        source_library_name=name,
        target_path=f"/media/pt/{name.lower()}",
        target_library_name=f"{name} (Portuguese)",
    )


class TestAlternatives:
    """Tests for alternative records."""

    def test_add_and_get_copy(self, store, make_alternative):
        alternative = make_alternative()
        assert store.add_alternative(alternative) is True

        loaded = store.get_alternative(alternative.id)
        loaded.name = "Changed"

        assert store.get_alternative(alternative.id).name == "Portuguese"

    def test_duplicate_name_any_case(self, store, make_alternative):
        assert store.add_alternative(make_alternative("Portuguese")) is True
        assert store.add_alternative(make_alternative("PORTUGUESE")) is False
        assert len(store.get_alternatives()) == 1

    def test_find_by_name(self, store, make_alternative):
        alternative = make_alternative("Español", code="es")
        store.add_alternative(alternative)
        assert store.find_alternative_by_name("español").id == alternative.id
        assert store.find_alternative_by_name("French") is None

    def test_update_stamps_modified(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)

        assert store.update_alternative(alternative.id, lambda a: setattr(a, "name", "Português")) is True

        updated = store.get_alternative(alternative.id)
        assert updated.name == "Português"
        assert updated.modified_at is not None
        assert store.update_alternative("missing", lambda a: None) is False

    def test_remove_clears_references(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        store.add_ldap_group_mapping(LdapGroupMapping("cn=pt,dc=example", alternative.id))
        store.update_settings(lambda s: setattr(s, "default_alternative_id", alternative.id) or True)

        assert store.remove_alternative(alternative.id) is True

        assert store.get_settings().default_alternative_id is None
        assert store.get_ldap_group_mappings() == []
        assert store.remove_alternative(alternative.id) is False


class TestMirrors:
    """Tests for mirror records."""

    def test_add_mirror_rejects_duplicate_source(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)

        assert store.add_mirror(alternative.id, _mirror()) is True
        assert store.add_mirror(alternative.id, _mirror()) is False
        assert store.add_mirror("missing", _mirror("other")) is False
        assert len(store.get_alternative(alternative.id).mirrors) == 1

    def test_same_source_in_two_alternatives(self, store, make_alternative):
        pt = make_alternative("Portuguese")
        es = make_alternative("Spanish", code="es")
        store.add_alternative(pt)
        store.add_alternative(es)

        assert store.add_mirror(pt.id, _mirror()) is True
        assert store.add_mirror(es.id, _mirror()) is True
        assert len(store.get_all_mirrors()) == 2

    def test_update_mirror_applies_to_fresh_record(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        mirror = _mirror()
        store.add_mirror(alternative.id, mirror)

        store.update_mirror(mirror.id, lambda m: setattr(m, "status", SyncStatus.SYNCING))
        store.update_mirror(mirror.id, lambda m: setattr(m, "last_sync_file_count", 7))

        loaded = store.get_mirror(mirror.id)
        assert loaded.status == SyncStatus.SYNCING
        assert loaded.last_sync_file_count == 7
        assert store.get_mirror_with_alternative(mirror.id)[1] == alternative.id

    def test_update_missing_mirror(self, store):
        assert store.update_mirror("missing", lambda m: None) is False

    def test_remove_mirror(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        mirror = _mirror()
        store.add_mirror(alternative.id, mirror)

        assert store.remove_mirror(mirror.id) is True
        assert store.remove_mirror(mirror.id) is False
        assert store.get_mirror(mirror.id) is None


class TestAtomicRemoval:
    """Tests for try_remove_alternative_atomic."""

    def test_succeeds_with_expected_mirrors(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        mirror = _mirror()
        store.add_mirror(alternative.id, mirror)

        result = store.try_remove_alternative_atomic(alternative.id, [mirror.id])

        assert result.succeeded
        assert store.get_alternative(alternative.id) is None

    def test_aborts_on_new_mirror(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        late = _mirror("late", "Shows")
        store.add_mirror(alternative.id, late)

        result = store.try_remove_alternative_atomic(alternative.id, [])

        assert result.outcome == RemoveOutcome.NEW_MIRRORS_ADDED
        assert result.unexpected_mirror_ids == [late.id]
        assert store.get_alternative(alternative.id) is not None

    def test_not_found(self, store):
        assert store.try_remove_alternative_atomic("missing", []).outcome == RemoveOutcome.NOT_FOUND

    def test_unavailable(self):
        backend = MemoryDocumentStore()
        backend.fail_loads = True
        store = ConfigurationStore(backend)
        assert store.try_remove_alternative_atomic("x", []).outcome == RemoveOutcome.UNAVAILABLE


class TestUserLanguages:
    def test_update_or_create(self, store):
        assert store.update_or_create_user_language("u1", lambda u: setattr(u, "is_plugin_managed", True)) is True
        assert store.update_or_create_user_language("u1", lambda u: setattr(u, "manually_set", True)) is False

        user_config = store.get_user_language("u1")
        assert user_config.is_plugin_managed is True
        assert user_config.manually_set is True

    def test_update_requires_existing(self, store):
        assert store.update_user_language("ghost", lambda u: None) is False

    def test_remove(self, store):
        store.update_or_create_user_language("u1", lambda u: None)
        assert store.remove_user_language("u1") is True
        assert store.remove_user_language("u1") is False
        assert store.get_user_languages() == []


class TestSettingsAndLdap:
    def test_update_settings_validates(self, store):
        def bad(settings):
            settings.mirror_sync_interval_hours = -1
            return True

        with pytest.raises(ValidationError):
            store.update_settings(bad)
        assert store.get_settings().mirror_sync_interval_hours == 6

    def test_update_settings_noop(self, store, backend):
        saves = backend.save_count
        assert store.update_settings(lambda s: False) is False
        assert backend.save_count == saves

    def test_exclusion_sets(self, store):
        store.update_settings(lambda s: setattr(s, "excluded_extensions", [".JPG"]) or True)
        assert store.get_excluded_extensions() == frozenset({".jpg"})
        assert ".trickplay" in store.get_included_directories()
        assert "metadata" in store.get_excluded_directories()

    def test_ldap_mappings(self, store):
        mapping = LdapGroupMapping("CN=PT,DC=example", "alt", priority=5)
        assert store.add_ldap_group_mapping(mapping) is True
        assert store.add_ldap_group_mapping(LdapGroupMapping("cn=pt,dc=example", "other")) is False
        assert store.remove_ldap_group_mapping(mapping.id) is True
        assert store.remove_ldap_group_mapping(mapping.id) is False

    def test_clear_all_keeps_settings(self, store, make_alternative):
        store.update_settings(lambda s: setattr(s, "auto_manage_new_users", True) or True)
        store.add_alternative(make_alternative())
        store.update_or_create_user_language("u1", lambda u: None)

        assert store.clear_all() is True

        assert store.get_alternatives() == []
        assert store.get_user_languages() == []
        assert store.get_settings().auto_manage_new_users is True


class TestDurability:
    """Tests for save and availability behaviour."""

    def test_failed_save_leaves_state_untouched(self, store, backend, make_alternative):
        backend.fail_saves = True
        with pytest.raises(PersistenceError):
            store.add_alternative(make_alternative())
        assert store.get_alternatives() == []

    def test_transform_error_leaves_state_untouched(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)

        def explode(a):
            a.name = "Half-applied"
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update_alternative(alternative.id, explode)
        assert store.get_alternative(alternative.id).name == "Portuguese"

    def test_every_mutation_is_saved(self, store, backend, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        store.add_mirror(alternative.id, _mirror())
        assert backend.save_count == 2
        assert backend.data["alternatives"][0]["mirrors"][0]["source_library_name"] == "Movies"

    def test_unavailable_store(self, make_alternative):
        backend = MemoryDocumentStore()
        backend.fail_loads = True
        store = ConfigurationStore(backend)

        assert store.available is False
        assert store.get_alternatives() == []
        assert store.add_alternative(make_alternative()) is False

        backend.fail_loads = False
        assert store.reload() is True
        assert store.add_alternative(make_alternative()) is True

    def test_concurrent_adds_are_serialized(self, store, make_alternative):
        alternative = make_alternative()
        store.add_alternative(alternative)
        results = []

        def add(index):
            results.append(store.add_mirror(alternative.id, _mirror(f"src-{index % 5}", f"Lib{index % 5}")))

        threads = [threading.Thread(target=add, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 5
        assert len(store.get_alternative(alternative.id).mirrors) == 5
