#!/usr/bin/env python3
"""Tests for filesystem operations."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from lingomirror.core.file_ops import (
    PROBE_PREFIX,
    FileOperationError,
    are_on_same_filesystem,
    cleanup_empty_directories,
    create_hardlink,
    file_signature,
    is_directory_empty,
    is_path_inside,
    remove_tree,
)


class TestCreateHardlink:
    """Tests for create_hardlink."""

    def test_creates_link_and_parents(self, temp_dir):
        """Test the link shares the source inode and parents are created."""
        source = temp_dir / "a.mkv"
        source.write_text("video")
        link = temp_dir / "mirror" / "nested" / "a.mkv"

        assert create_hardlink(source, link) is True
        assert os.stat(source).st_ino == os.stat(link).st_ino

    def test_replaces_existing_file(self, temp_dir):
        """Test a stale file at the link path is replaced."""
        source = temp_dir / "a.mkv"
        source.write_text("new")
        link = temp_dir / "b.mkv"
        link.write_text("old")

        assert create_hardlink(source, link) is True
        assert link.read_text() == "new"

    def test_missing_source(self, temp_dir):
        assert create_hardlink(temp_dir / "missing", temp_dir / "link") is False
        assert not (temp_dir / "link").exists()

    def test_link_failure_returns_false(self, temp_dir):
        source = temp_dir / "a.mkv"
        source.write_text("video")
        with patch("lingomirror.core.file_ops.os.link", side_effect=OSError("EXDEV")):
            assert create_hardlink(source, temp_dir / "b.mkv") is False

    def test_empty_arguments_raise(self, temp_dir):
        with pytest.raises(FileOperationError):
            create_hardlink("", temp_dir / "b")
        with pytest.raises(FileOperationError):
            create_hardlink(temp_dir / "a", "")


class TestSameFilesystem:
    """Tests for are_on_same_filesystem."""

    def test_same_directory_tree(self, temp_dir):
        (temp_dir / "src").mkdir()
        assert are_on_same_filesystem(temp_dir / "src", temp_dir / "not" / "created" / "yet") is True

    def test_probe_leaves_nothing_behind(self, temp_dir):
        src = temp_dir / "src"
        dst = temp_dir / "dst"
        src.mkdir()
        dst.mkdir()

        assert are_on_same_filesystem(src, dst, probe=True) is True
        assert not any(p.name.startswith(PROBE_PREFIX) for p in temp_dir.rglob("*"))

    def test_different_devices(self, temp_dir):
        real_stat = os.stat

        class FakeStat:
            def __init__(self, real):
                self._real = real
                self.st_dev = real.st_dev + 1

            def __getattr__(self, name):
                return getattr(self._real, name)

        def fake_stat(path, *args, **kwargs):
            result = real_stat(path, *args, **kwargs)
            if str(path).endswith("other"):
                return FakeStat(result)
            return result

        (temp_dir / "other").mkdir()
        with patch("lingomirror.core.file_ops.os.stat", side_effect=fake_stat):
            assert are_on_same_filesystem(temp_dir, temp_dir / "other") is False

    def test_empty_arguments(self):
        assert are_on_same_filesystem("", "/tmp") is False


class TestPathHelpers:
    """Tests for containment and directory helpers."""

    def test_is_path_inside(self):
        assert is_path_inside("/media/movies/pt", "/media/movies") is True
        assert is_path_inside("/media/movies", "/media/movies") is True
        assert is_path_inside("/media/movies2", "/media/movies") is False
        assert is_path_inside("/media/movies/../pt", "/media/movies") is False

    def test_is_directory_empty(self, temp_dir):
        assert is_directory_empty(temp_dir) is True
        (temp_dir / "f").write_text("x")
        assert is_directory_empty(temp_dir) is False
        assert is_directory_empty(temp_dir / "missing") is False

    def test_cleanup_stops_at_base(self, temp_dir):
        """Test empty ancestors are pruned but the base survives."""
        deep = temp_dir / "a" / "b" / "c"
        deep.mkdir(parents=True)

        assert cleanup_empty_directories(deep, temp_dir) == 3
        assert temp_dir.exists()
        assert not (temp_dir / "a").exists()

    def test_cleanup_keeps_non_empty(self, temp_dir):
        deep = temp_dir / "a" / "b"
        deep.mkdir(parents=True)
        (temp_dir / "a" / "keep.txt").write_text("x")

        assert cleanup_empty_directories(deep, temp_dir) == 1
        assert (temp_dir / "a").exists()

    def test_cleanup_outside_base_is_noop(self, temp_dir):
        outside = temp_dir / "outside"
        outside.mkdir()
        assert cleanup_empty_directories(outside, temp_dir / "base") == 0
        assert outside.exists()

    def test_remove_tree(self, temp_dir):
        tree = temp_dir / "tree"
        (tree / "x").mkdir(parents=True)
        remove_tree(tree)
        assert not tree.exists()
        remove_tree(tree)


class TestFileSignature:
    """Tests for file_signature."""

    def test_hardlink_shares_signature(self, temp_dir):
        source = temp_dir / "a"
        source.write_text("data")
        os.link(source, temp_dir / "b")
        assert file_signature(source) == file_signature(temp_dir / "b")

    def test_copy_differs_by_inode(self, temp_dir):
        (temp_dir / "a").write_text("data")
        (temp_dir / "b").write_text("data")
        os.utime(temp_dir / "b", ns=(os.stat(temp_dir / "a").st_atime_ns, os.stat(temp_dir / "a").st_mtime_ns))

        first = file_signature(temp_dir / "a")
        second = file_signature(temp_dir / "b")
        assert (first.size, first.mtime_ns) == (second.size, second.mtime_ns)
        assert first != second

    def test_missing_file_raises(self, temp_dir):
        with pytest.raises(OSError):
            file_signature(Path(temp_dir) / "missing")
