"""
Gallery core: every file operation the HTTP layer performs.

All mutating operations (upload, delete, restore, rebalance) run under one
in-process lock so their list-then-rename sequences never interleave.
State is re-derived from the filesystem on every call.
"""

import logging
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Optional

from .database import JsonFileStore
from .errors import ConfigurationError, NotFoundError
from .layout import LayoutParams, layout_grid, layout_slots, load_slot_definitions
from .paths import resolve_basename, resolve_within, to_relative
from .pngsize import read_png_size
from .selection import BatchSelection
from .storage import (
    ImageIndex,
    ImageRecord,
    MtimeImageIndex,
    check_folder_name,
    get_upload_target_dir,
    list_folder,
    list_folders,
    rebalance_batches,
    unique_filename,
    upload_filename,
)
from .trash import TrashEntry, TrashStore

logger = logging.getLogger(__name__)

LAYOUT_MODES = ("slots", "grid")


class Gallery:
    """
    Uploaded images under one root directory.

    Args:
        upload_root: Directory holding batch folders and the trash
        data_dir: Directory for small JSON state files (batch selection)
        folder_size: Images per batch folder
        index: Source of upload order (defaults to modification time)
        utc_offset_hours: Offset used in generated upload filenames
        filename_prefix: Leading part of generated upload filenames
        follow_selection: Display the selected batch instead of the first one
    """

    def __init__(self, upload_root: Path, data_dir: Path, folder_size: int = 24,
                 index: Optional[ImageIndex] = None, utc_offset_hours: int = 9,
                 filename_prefix: str = "paint", follow_selection: bool = True):
        self.upload_root = Path(upload_root)
        self.folder_size = folder_size
        self.index = index or MtimeImageIndex(self.upload_root)
        self.trash = TrashStore(self.upload_root)
        self.selection = BatchSelection(
            JsonFileStore(Path(data_dir) / "selection.json", default={"selectedIndex": 0})
        )
        self.utc_offset_hours = utc_offset_hours
        self.filename_prefix = filename_prefix
        self.follow_selection = follow_selection
        self.lock = Lock()

    @classmethod
    def from_config(cls, config: dict, upload_root: Path, data_dir: Path) -> "Gallery":
        return cls(
            upload_root=upload_root,
            data_dir=data_dir,
            folder_size=config["batches"]["folder_size"],
            utc_offset_hours=config["upload"]["utc_offset_hours"],
            filename_prefix=config["upload"]["prefix"],
            follow_selection=config["display"]["follow_selection"],
        )

    def ensure_dirs(self):
        self.upload_root.mkdir(parents=True, exist_ok=True)

    # ============================================
    # UPLOAD
    # ============================================

    def save_upload(self, png_bytes: bytes, now: Optional[datetime] = None) -> dict:
        """Store an uploaded PNG in the current batch folder."""
        with self.lock:
            folder, dir_path = get_upload_target_dir(self.upload_root, self.folder_size)
            base_name = upload_filename(now, self.utc_offset_hours, self.filename_prefix)
            filename = unique_filename(base_name, dir_path)
            (dir_path / filename).write_bytes(png_bytes)

        rel_path = f"{folder}/{filename}"
        logger.info(f"Upload saved: {rel_path} ({len(png_bytes)} bytes)")
        return {"filename": filename, "path": rel_path, "url": f"/uploads/{rel_path}"}

    # ============================================
    # DELETE / RESTORE
    # ============================================

    def _locate_by_filename(self, filename: str) -> str:
        """Relative path for a bare filename: the root first, then the batch folders."""
        candidate = resolve_basename(self.upload_root, filename)
        if candidate.is_file():
            return to_relative(self.upload_root, candidate)

        for record in self.index.ordered():
            if record.filename == candidate.name:
                return record.path

        raise NotFoundError(f"File not found: {filename}")

    def delete(self, target: str, by_filename: bool = False) -> TrashEntry:
        """
        Move an image to the trash, then tidy batch folders.

        Args:
            target: Path relative to the upload root, or a bare filename
            by_filename: Look target up by name instead of by path
        """
        with self.lock:
            rel_path = self._locate_by_filename(target) if by_filename else target
            entry = self.trash.move_to_trash(rel_path)
        self.try_rebalance()
        return entry

    def restore(self, entry_id: str) -> str:
        """Move a trashed image back. Returns its restored relative path."""
        with self.lock:
            restored = self.trash.restore(entry_id)
        self.try_rebalance()
        return restored

    def list_trash(self) -> list[dict]:
        return self.trash.list_entries()

    # ============================================
    # REBALANCE
    # ============================================

    def rebalance(self) -> int:
        with self.lock:
            return rebalance_batches(self.upload_root, self.folder_size, self.index)

    def try_rebalance(self) -> Optional[int]:
        """Rebalance, logging instead of raising on failure."""
        try:
            return self.rebalance()
        except OSError as e:
            logger.warning(f"Rebalance failed: {e}")
            return None

    # ============================================
    # LISTINGS
    # ============================================

    def ordered(self) -> list[ImageRecord]:
        return self.index.ordered()

    def list_images(self, folder: Optional[str] = None) -> list[dict]:
        """All images oldest first, or just one folder's."""
        if folder:
            check_folder_name(folder)
            self.try_rebalance()
            return [record.to_dict() for record in list_folder(self.upload_root, folder)]
        return [record.to_dict() for record in self.ordered()]

    def list_folders(self) -> list[dict]:
        return list_folders(self.upload_root)

    # ============================================
    # BATCHES
    # ============================================

    def _chunks(self, records: list[ImageRecord]) -> list[list[ImageRecord]]:
        size = self.folder_size
        return [records[i:i + size] for i in range(0, len(records), size)]

    def batches(self) -> dict:
        """The global order split into folder-sized batches, with the selection."""
        chunks = self._chunks(self.ordered())
        selected = self.selection.get_selected_batch_index(len(chunks))

        return {
            "batchSize": self.folder_size,
            "selectedIndex": selected,
            "batches": [
                {
                    "index": i,
                    "count": len(chunk),
                    "items": [record.to_dict() for record in chunk],
                    "isSelected": i == selected,
                }
                for i, chunk in enumerate(chunks)
            ],
        }

    def select_batch(self, index) -> int:
        return self.selection.set_selection(index)

    def display_images(self) -> list[ImageRecord]:
        """Images in the live batch (the first batch unless following the selection)."""
        chunks = self._chunks(self.ordered())
        if not chunks:
            return []
        if not self.follow_selection:
            return chunks[0]
        return chunks[self.selection.get_selected_batch_index(len(chunks))]

    # ============================================
    # DISPLAY LAYOUT
    # ============================================

    def image_size(self, record: ImageRecord) -> tuple[int, int]:
        path = resolve_within(self.upload_root, record.path)
        return read_png_size(path)

    def slots(self, params: LayoutParams, mode: str = "slots",
              slot_file: Optional[Path] = None) -> list[dict]:
        """
        Positioned display items for the live batch.

        Raises:
            ConfigurationError: slot file missing or insufficient (slots mode)
        """
        if mode not in LAYOUT_MODES:
            raise ConfigurationError(f"Unknown layout mode: {mode}")

        if mode == "grid":
            return layout_grid(self.display_images(), params, self.image_size)

        definitions = load_slot_definitions(slot_file, params.slot_count)
        return layout_slots(definitions, self.display_images(), params, self.image_size)
