"""
Tests for the project setup script.
"""
import json

from paintwall.config import DEFAULTS
from paintwall.layout import load_slot_definitions
from scripts.setup import build_slots, create_directories, write_slot_file


class TestBuildSlots:

    def test_row_major_cells(self):
        slots = build_slots(columns=6, slot_count=24)
        assert len(slots) == 24
        assert slots[0] == {"slot": 1, "row": 0, "col": 0}
        assert slots[7] == {"slot": 8, "row": 1, "col": 1}
        assert slots[23] == {"slot": 24, "row": 3, "col": 5}


class TestCreateDirectories:

    def test_creates_missing_only(self, tmp_path):
        existing = tmp_path / "data"
        existing.mkdir()
        missing = tmp_path / "uploads"

        assert create_directories([existing, missing]) == 1
        assert missing.is_dir()

    def test_dry_run_touches_nothing(self, tmp_path):
        target = tmp_path / "uploads"
        assert create_directories([target], dry_run=True) == 1
        assert not target.exists()


class TestWriteSlotFile:

    def test_writes_loadable_file(self, tmp_path):
        path = tmp_path / "slot.json"

        assert write_slot_file(path, DEFAULTS["layout"]) is True
        assert len(load_slot_definitions(path, 24)) == 24

    def test_keeps_existing_file(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text(json.dumps([{"slot": 1, "row": 0, "col": 0}]))

        assert write_slot_file(path, DEFAULTS["layout"]) is False
        assert len(json.loads(path.read_text())) == 1

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "slot.json"
        path.write_text("[]")

        assert write_slot_file(path, DEFAULTS["layout"], force=True) is True
        assert len(json.loads(path.read_text())) == 24

    def test_dry_run_writes_nothing(self, tmp_path):
        path = tmp_path / "slot.json"
        assert write_slot_file(path, DEFAULTS["layout"], dry_run=True) is True
        assert not path.exists()
