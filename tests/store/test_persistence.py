#!/usr/bin/env python3
"""Tests for document models and persistence backends."""

from datetime import timezone

import pytest
import yaml

from lingomirror.core.constants import DEFAULT_LIBRARY_NAME_TEMPLATE
from lingomirror.store.models import Mirror, Settings, StoreDocument, SyncStatus, UserLanguageConfig
from lingomirror.store.persistence import MemoryDocumentStore, PersistenceError, YamlDocumentStore


def _document(make_alternative) -> StoreDocument:
    alternative = make_alternative()
    alternative.mirrors.append(
        Mirror(
            source_library_id="src",
            source_library_name="Movies",
            target_path="/media/pt/movies",
            target_library_name="Movies (Portuguese)",
            target_library_id="tgt",
            status=SyncStatus.SYNCED,
            last_sync_file_count=12,
        )
    )
    return StoreDocument(
        alternatives=[alternative],
        user_languages=[UserLanguageConfig("u1", alternative.id, is_plugin_managed=True)],
    )


class TestModels:
    """Tests for model serialization details."""

    def test_status_serialized_by_name(self):
        mirror = Mirror("src", "Movies", "/media/pt/movies", "Movies (Portuguese)", status=SyncStatus.ERROR)
        assert mirror.to_dict()["status"] == "error"
        assert Mirror.from_dict({**mirror.to_dict(), "status": 2}).status == SyncStatus.SYNCED

    def test_naive_timestamps_become_utc(self):
        mirror = Mirror.from_dict(
            {"id": "m", "source_library_id": "s", "last_synced_at": "2024-05-01T10:00:00"}
        )
        assert mirror.last_synced_at.tzinfo == timezone.utc
        assert mirror.status == SyncStatus.PENDING

    def test_settings_fill_missing_fields(self):
        settings = Settings.from_dict({"auto_manage_new_users": True, "unknown": 1, "library_name_template": None})
        assert settings.auto_manage_new_users is True
        assert settings.library_name_template == DEFAULT_LIBRARY_NAME_TEMPLATE
        assert ".nfo" in settings.excluded_extensions

    def test_document_round_trip(self, make_alternative):
        document = _document(make_alternative)
        assert StoreDocument.from_dict(document.to_dict()) == document

    def test_find_mirror_for_source(self, make_alternative):
        alternative = _document(make_alternative).alternatives[0]
        assert alternative.find_mirror_for_source("src").target_library_id == "tgt"
        assert alternative.find_mirror_for_source("other") is None


class TestYamlDocumentStore:
    """Tests for the YAML file backend."""

    def test_missing_file_is_empty_document(self, temp_dir):
        document = YamlDocumentStore(temp_dir / "mirrors.yaml").load()
        assert document.alternatives == []
        assert document.settings == Settings()

    def test_save_and_load(self, temp_dir, make_alternative):
        backend = YamlDocumentStore(temp_dir / "data" / "mirrors.yaml")
        document = _document(make_alternative)

        backend.save(document)

        assert backend.load() == document
        raw = yaml.safe_load((temp_dir / "data" / "mirrors.yaml").read_text())
        assert raw["alternatives"][0]["mirrors"][0]["status"] == "synced"
        assert [p.name for p in (temp_dir / "data").iterdir()] == ["mirrors.yaml"]

    def test_corrupt_file(self, temp_dir):
        path = temp_dir / "mirrors.yaml"
        path.write_text("alternatives: [")
        with pytest.raises(PersistenceError, match="YAML parse error"):
            YamlDocumentStore(path).load()

    def test_invalid_structure(self, temp_dir):
        path = temp_dir / "mirrors.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(PersistenceError, match="Invalid document format"):
            YamlDocumentStore(path).load()

    def test_invalid_entity(self, temp_dir):
        path = temp_dir / "mirrors.yaml"
        path.write_text(yaml.safe_dump({"alternatives": [{"name": "no id"}]}))
        with pytest.raises(PersistenceError, match="Invalid document"):
            YamlDocumentStore(path).load()


class TestMemoryDocumentStore:
    def test_isolated_copies(self, make_alternative):
        backend = MemoryDocumentStore()
        document = _document(make_alternative)
        backend.save(document)

        document.alternatives.clear()

        assert len(backend.load().alternatives) == 1
        assert backend.save_count == 1

    def test_failure_switches(self):
        backend = MemoryDocumentStore()
        backend.fail_loads = True
        with pytest.raises(PersistenceError):
            backend.load()
        backend.fail_saves = True
        with pytest.raises(PersistenceError):
            backend.save(StoreDocument())
