"""Tests for file helpers."""

import json

from scripts.lib.utils import atomic_write_text, load_json_file


class TestAtomicWrite:
    def test_creates_parent_directories(self, tmp_path):
        target = tmp_path / "processed" / "nested" / "report.csv"
        assert atomic_write_text("Section,Metric,Value\n", target) is True
        assert target.read_text() == "Section,Metric,Value\n"
        assert not target.with_suffix(".csv.tmp").exists()

    def test_overwrites_existing_file(self, tmp_path):
        target = tmp_path / "report.json"
        target.write_text("old")
        atomic_write_text("new", target)
        assert target.read_text() == "new"

    def test_unwritable_target_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        assert atomic_write_text("x", blocker / "report.json") is False


class TestLoadJsonFile:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"clients": [{"id": "c1"}]}))
        assert load_json_file(path) == {"clients": [{"id": "c1"}]}
