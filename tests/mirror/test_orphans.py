#!/usr/bin/env python3
"""Tests for orphan mirror reconciliation."""

import os
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from lingomirror.core.errors import FatalOperationError
from lingomirror.mirror.orphans import REASON_GHOST, REASON_MIRROR_DELETED, REASON_SOURCE_DELETED, OrphanReconciler
from lingomirror.store.models import Mirror, SyncStatus, utcnow


@pytest.fixture
def mirrored(manager, portuguese, library):
    return manager.add_library_mirror(portuguese.id, library.id)


def _ghost(store, alternative, library, age: timedelta) -> Mirror:
    ghost = Mirror(
        source_library_id=library.id,
        source_library_name=library.name,
        target_path="/media/pt/never-created",
        target_library_name="Ghost (Portuguese)",
        status=SyncStatus.PENDING,
        created_at=utcnow() - age,
    )
    store.add_mirror(alternative.id, ghost)
    return ghost


class TestClassify:
    """Tests for orphan reasons."""

    @pytest.fixture
    def healthy(self):
        return Mirror("src", "Movies", "/media/pt/movies", "Movies (Portuguese)", target_library_id="tgt")

    def test_healthy(self, orphans, healthy):
        assert orphans.classify(healthy, {"src", "tgt"}, timedelta(minutes=30)) is None

    def test_source_deleted_checked_first(self, orphans, healthy):
        assert orphans.classify(healthy, set(), timedelta(minutes=30)) == REASON_SOURCE_DELETED

    def test_mirror_deleted(self, orphans, healthy):
        assert orphans.classify(healthy, {"src"}, timedelta(minutes=30)) == REASON_MIRROR_DELETED

    def test_ghost_needs_age(self, orphans):
        fresh = Mirror("src", "Movies", "/t", "Movies (Portuguese)", status=SyncStatus.ERROR)
        assert orphans.classify(fresh, {"src"}, timedelta(minutes=30)) is None
        fresh.created_at = utcnow() - timedelta(hours=1)
        assert orphans.classify(fresh, {"src"}, timedelta(minutes=30)) == REASON_GHOST

    def test_syncing_is_never_a_ghost(self, orphans):
        busy = Mirror("src", "Movies", "/t", "M", status=SyncStatus.SYNCING, created_at=utcnow() - timedelta(days=1))
        assert orphans.classify(busy, {"src"}, timedelta(minutes=30)) is None


class TestCleanup:
    """Tests for OrphanReconciler.cleanup."""

    def test_healthy_mirror_untouched(self, orphans, store, mirrored):
        result = orphans.cleanup()
        assert result.total_cleaned == 0
        assert store.get_mirror(mirrored.id) is not None

    def test_source_deleted(self, orphans, store, host, mirrored):
        host.remove_virtual_folder("Movies")

        result = orphans.cleanup()

        assert result.cleaned_up_mirrors == ["Movies (Portuguese) (source deleted)"]
        assert store.get_mirror(mirrored.id) is None
        assert host.get_virtual_folder(mirrored.target_library_id) is None
        assert not os.path.exists(mirrored.target_path)
        assert result.sources_without_mirrors == []

    def test_mirror_deleted(self, orphans, store, host, library, mirrored):
        host.remove_virtual_folder("Movies (Portuguese)")

        result = orphans.cleanup()

        assert result.cleaned_up_mirrors == ["Movies (Portuguese) (mirror deleted)"]
        assert result.sources_without_mirrors == [library.id]
        assert host.get_virtual_folder(library.id) is not None
        assert store.get_mirror(mirrored.id) is None

    def test_old_ghost_removed(self, orphans, store, portuguese, library):
        ghost = _ghost(store, portuguese, library, timedelta(hours=2))

        result = orphans.cleanup()

        assert result.cleaned_up_mirrors == ["Ghost (Portuguese) (ghost)"]
        assert store.get_mirror(ghost.id) is None

    def test_young_ghost_kept(self, orphans, store, portuguese, library):
        ghost = _ghost(store, portuguese, library, timedelta(minutes=1))
        assert orphans.cleanup().total_cleaned == 0
        assert store.get_mirror(ghost.id) is not None

    def test_threshold_override(self, store, engine, host, portuguese, library):
        _ghost(store, portuguese, library, timedelta(minutes=1))
        reconciler = OrphanReconciler(store, engine, host, ghost_threshold_minutes=0)
        assert reconciler.cleanup().total_cleaned == 1

    def test_settings_threshold(self, orphans, store, portuguese, library):
        store.update_settings(lambda s: setattr(s, "ghost_threshold_minutes", 0.5) or True)
        _ghost(store, portuguese, library, timedelta(minutes=1))
        assert orphans.cleanup().total_cleaned == 1

    def test_failure_reported(self, orphans, store, engine, host, mirrored):
        host.remove_virtual_folder("Movies")
        with patch.object(engine, "delete_mirror", side_effect=FatalOperationError("disk busy")):
            result = orphans.cleanup()

        assert result.failed_cleanups == ["Movies (Portuguese): disk busy"]
        assert result.total_cleaned == 0
        assert store.get_mirror(mirrored.id) is not None

    def test_cancelled(self, orphans, store, host, mirrored):
        host.remove_virtual_folder("Movies")
        cancel = threading.Event()
        cancel.set()

        assert orphans.cleanup(cancel).total_cleaned == 0
        assert store.get_mirror(mirrored.id) is not None
