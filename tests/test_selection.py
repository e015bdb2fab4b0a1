"""
Unit tests for the persisted batch selection and batch presentation.
"""
import json

import pytest

from paintwall.database import JsonFileStore
from paintwall.errors import ValidationError
from paintwall.selection import BatchSelection


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "selection.json", default={"selectedIndex": 0})


@pytest.fixture
def selection(store):
    return BatchSelection(store)


class TestBatchSelection:

    def test_no_batches_means_no_selection(self, selection):
        assert selection.get_selected_batch_index(0) is None

    def test_defaults_to_first_batch(self, selection):
        assert selection.get_selected_batch_index(3) == 0

    def test_persists_selection(self, selection, store):
        assert selection.set_selection(2) == 2
        assert json.loads(store.path.read_text()) == {"selectedIndex": 2}
        assert selection.get_selected_batch_index(5) == 2

    def test_clamps_to_last_batch(self, selection):
        selection.set_selection(7)
        assert selection.get_selected_batch_index(3) == 2

    def test_truncates_fractional_index(self, selection):
        assert selection.set_selection(1.9) == 1

    @pytest.mark.parametrize("bad", [-1, float("nan"), float("inf"), "2", None, True])
    def test_rejects_invalid_index(self, selection, bad):
        with pytest.raises(ValidationError):
            selection.set_selection(bad)

    def test_garbage_state_file_reads_as_zero(self, selection, store):
        store.path.write_text('{"selectedIndex": "three"}')
        assert selection.get_selected_batch_index(4) == 0


class TestGalleryBatches:

    def test_batches_split_global_order(self, gallery, upload_root, write_png):
        for i in range(30):
            write_png(upload_root, f"batch-0001/{i:02d}.png", 1000 + i)

        result = gallery.batches()

        assert result["batchSize"] == 24
        assert result["selectedIndex"] == 0
        assert [b["count"] for b in result["batches"]] == [24, 6]
        assert [b["isSelected"] for b in result["batches"]] == [True, False]
        assert result["batches"][1]["items"][0]["filename"] == "24.png"

    def test_empty_gallery(self, gallery):
        assert gallery.batches() == {"batchSize": 24, "selectedIndex": None, "batches": []}
        assert gallery.display_images() == []

    def test_display_follows_selection(self, gallery, upload_root, write_png):
        for i in range(30):
            write_png(upload_root, f"batch-0001/{i:02d}.png", 1000 + i)

        gallery.select_batch(1)

        assert [r.filename for r in gallery.display_images()] == [f"{i:02d}.png" for i in range(24, 30)]

    def test_display_ignores_selection_when_disabled(self, tmp_path, upload_root, write_png):
        from paintwall.gallery import Gallery

        gallery = Gallery(upload_root, tmp_path / "data", folder_size=24, follow_selection=False)
        for i in range(30):
            write_png(upload_root, f"batch-0001/{i:02d}.png", 1000 + i)
        gallery.select_batch(1)

        assert len(gallery.display_images()) == 24
        assert gallery.batches()["selectedIndex"] == 1
