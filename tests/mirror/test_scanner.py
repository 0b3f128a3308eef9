#!/usr/bin/env python3
"""Tests for mirror directory scanning."""

import os

from lingomirror.core.file_ops import PROBE_PREFIX
from lingomirror.mirror.scanner import iter_mirrorable_files, scan_sources, scan_target
from lingomirror.rules.classifier import FileClassifier


class TestScanning:
    """Tests for iter_mirrorable_files and friends."""

    def test_relative_keys_and_exclusions(self, source_dir):
        files = scan_target(str(source_dir), FileClassifier())

        assert set(files) == {
            os.path.join("Film (2020)", "film.mkv"),
            os.path.join("Film (2020)", "film.srt"),
            os.path.join("Other (2021)", "other.mp4"),
        }
        film = files[os.path.join("Film (2020)", "film.mkv")]
        assert film.path == source_dir / "Film (2020)" / "film.mkv"
        assert film.signature.ino == os.stat(film.path).st_ino

    def test_included_directory_scanned_when_not_excluded(self, source_dir):
        classifier = FileClassifier.from_lists(None, ["extrafanart"], None)
        files = scan_target(str(source_dir), classifier)

        assert os.path.join("Film (2020)", ".trickplay", "0.jpg") in files
        assert os.path.join("Film (2020)", "poster.jpg") not in files
        assert os.path.join("Film (2020)", "extrafanart", "fanart1.jpg") not in files

    def test_probe_files_ignored(self, temp_dir):
        (temp_dir / f"{PROBE_PREFIX}1234").write_text("")
        (temp_dir / "film.mkv").write_text("x")
        assert list(dict(iter_mirrorable_files(str(temp_dir), FileClassifier()))) == ["film.mkv"]

    def test_parent_directory_names_do_not_exclude(self, temp_dir):
        root = temp_dir / "metadata" / "movies"
        root.mkdir(parents=True)
        (root / "film.mkv").write_text("x")
        assert list(scan_target(str(root), FileClassifier())) == ["film.mkv"]

    def test_missing_root_yields_nothing(self, temp_dir):
        assert scan_target(str(temp_dir / "missing"), FileClassifier()) == {}

    def test_first_source_root_wins(self, temp_dir):
        first = temp_dir / "a"
        second = temp_dir / "b"
        for root in (first, second):
            root.mkdir()
            (root / "film.mkv").write_text(root.name)
        (second / "extra.mkv").write_text("b")

        files = scan_sources([str(first), str(second)], FileClassifier())

        assert files["film.mkv"].path == first / "film.mkv"
        assert files["extra.mkv"].path == second / "extra.mkv"
