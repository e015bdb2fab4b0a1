"""
Upload storage: filename allocation, batch folders and the image index.

Structure on disk:
    uploads/
    ├── batch-0001/
    │   ├── paint-20250101_120000_000.png
    │   └── ...               (at most folder_size PNGs)
    ├── batch-0002/
    └── trash/                (see trash.py)

Upload order is derived from file modification times; there is no stored
sequence counter.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .errors import NotFoundError
from .paths import resolve_within, to_relative

logger = logging.getLogger(__name__)

IMAGE_EXTENSION = ".png"
BATCH_DIR_PATTERN = re.compile(r"^batch-\d{4}$")


# ============================================
# FILENAMES
# ============================================

def unique_filename(base_name: str, directory: Path) -> str:
    """
    Return a name that does not exist yet in directory.

    Probes base_name, then "<stem>-1<ext>", "<stem>-2<ext>", ...
    """
    directory = Path(directory)
    stem, ext = Path(base_name).stem, Path(base_name).suffix
    candidate = base_name
    counter = 1
    while (directory / candidate).exists():
        candidate = f"{stem}-{counter}{ext}"
        counter += 1
    return candidate


def format_upload_timestamp(now: datetime, utc_offset_hours: int = 9) -> str:
    """Format now as YYYYMMDD_HHMMSS_mmm in a fixed UTC offset."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(timezone(timedelta(hours=utc_offset_hours)))
    return f"{local:%Y%m%d_%H%M%S}_{local.microsecond // 1000:03d}"


def upload_filename(now: Optional[datetime] = None, utc_offset_hours: int = 9,
                    prefix: str = "paint") -> str:
    """Time-derived upload filename, e.g. paint-20250101_210000_123.png."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{format_upload_timestamp(now, utc_offset_hours)}{IMAGE_EXTENSION}"


# ============================================
# BATCH FOLDERS
# ============================================

def batch_folder_name(index: int) -> str:
    return f"batch-{index:04d}"


def is_batch_dir_name(name: str) -> bool:
    return bool(BATCH_DIR_PATTERN.match(name))


def is_image_file(path: Path) -> bool:
    return path.is_file() and path.name.endswith(IMAGE_EXTENSION)


def count_png_files(directory: Path) -> int:
    return sum(1 for entry in directory.iterdir() if is_image_file(entry))


def batch_dirs(root: Path) -> list[Path]:
    """Existing batch folders under root, sorted by name."""
    if not root.exists():
        return []
    return sorted(
        (entry for entry in root.iterdir() if entry.is_dir() and is_batch_dir_name(entry.name)),
        key=lambda entry: entry.name,
    )


def latest_batch(root: Path) -> tuple[Optional[str], int]:
    """Return (name, index) of the highest-numbered batch folder, or (None, 0)."""
    indices = [int(entry.name[len("batch-"):]) for entry in batch_dirs(root)]
    max_index = max(indices, default=0)
    if max_index <= 0:
        return None, 0
    return batch_folder_name(max_index), max_index


def get_upload_target_dir(root: Path, folder_size: int) -> tuple[str, Path]:
    """
    Pick the batch folder a new upload goes into.

    The latest folder is reused while it holds fewer than folder_size PNGs;
    otherwise the next-numbered folder is created.

    Returns:
        Tuple of (folder name, absolute folder path)
    """
    root.mkdir(parents=True, exist_ok=True)
    name, index = latest_batch(root)

    if name is None:
        folder = batch_folder_name(1)
    elif count_png_files(root / name) < folder_size:
        folder = name
    else:
        folder = batch_folder_name(index + 1)

    dir_path = root / folder
    dir_path.mkdir(parents=True, exist_ok=True)
    return folder, dir_path


def list_folders(root: Path) -> list[dict]:
    """Batch folders with their PNG counts."""
    return [
        {"folder": entry.name, "count": count_png_files(entry)}
        for entry in batch_dirs(root)
    ]


# ============================================
# IMAGE INDEX
# ============================================

@dataclass
class ImageRecord:
    """One uploaded image. path is relative to the upload root."""
    path: str
    filename: str
    modified_at: float

    @property
    def url(self) -> str:
        return f"/uploads/{self.path}"

    @property
    def updated_at_ms(self) -> float:
        """Modification time in epoch milliseconds, sub-millisecond part kept."""
        return self.modified_at * 1000

    def to_dict(self) -> dict:
        return {"filename": self.filename, "path": self.path, "url": self.url}


class ImageIndex(ABC):
    """Source of the canonical upload order (oldest first)."""

    @abstractmethod
    def ordered(self) -> list[ImageRecord]:
        """All live images, oldest first."""


class MtimeImageIndex(ImageIndex):
    """
    Orders images by file modification time.

    Scans top-level PNGs and one level of batch folders. Enumeration is sorted
    by name so equal timestamps keep a deterministic order.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _scan(self) -> list[tuple[str, Path]]:
        files = []
        if not self.root.exists():
            return files

        for entry in sorted(self.root.iterdir(), key=lambda e: e.name):
            if is_image_file(entry):
                files.append((entry.name, entry))
            elif entry.is_dir() and is_batch_dir_name(entry.name):
                for child in sorted(entry.iterdir(), key=lambda c: c.name):
                    if is_image_file(child):
                        files.append((f"{entry.name}/{child.name}", child))
        return files

    def ordered(self) -> list[ImageRecord]:
        records = []
        for rel_path, file_path in self._scan():
            try:
                mtime = file_path.stat().st_mtime
            except FileNotFoundError:
                # Removed between listing and stat
                continue
            records.append(ImageRecord(path=rel_path, filename=file_path.name, modified_at=mtime))

        records.sort(key=lambda r: r.modified_at)
        return records


def check_folder_name(folder: str) -> str:
    """
    Validate a folder name taken from a request.

    Only the upload root (".") and batch folders can be listed; the trash
    and anything nested are reported as missing.
    """
    name = (folder or "").strip("/")
    if name != "." and not is_batch_dir_name(name):
        raise NotFoundError(f"Folder not found: {folder}")
    return name


def list_folder(root: Path, folder: str) -> list[ImageRecord]:
    """PNGs of the upload root or of one batch folder, oldest first."""
    name = check_folder_name(folder)
    folder_path = resolve_within(root, name)
    if not folder_path.is_dir():
        raise NotFoundError(f"Folder not found: {folder}")

    rel_folder = to_relative(root, folder_path)
    records = []
    for entry in sorted(folder_path.iterdir(), key=lambda e: e.name):
        if is_image_file(entry):
            rel_path = f"{rel_folder}/{entry.name}" if rel_folder != "." else entry.name
            records.append(ImageRecord(path=rel_path, filename=entry.name,
                                       modified_at=entry.stat().st_mtime))

    records.sort(key=lambda r: r.modified_at)
    return records


# ============================================
# REBALANCE
# ============================================

def rebalance_batches(root: Path, folder_size: int, index: ImageIndex) -> int:
    """
    Move every image into the batch folder its global position calls for.

    Image i (oldest first) belongs in batch floor(i / folder_size) + 1.
    Empty batch folders are removed afterwards. Running it again without
    intervening changes moves nothing.

    Returns:
        Number of files moved
    """
    ordered = index.ordered()
    moves = 0

    for i, record in enumerate(ordered):
        target_folder = batch_folder_name(i // folder_size + 1)
        if record.path == f"{target_folder}/{record.filename}":
            continue

        target_dir = root / target_folder
        target_dir.mkdir(parents=True, exist_ok=True)
        target_name = unique_filename(record.filename, target_dir)
        (root / record.path).rename(target_dir / target_name)
        moves += 1

    for entry in batch_dirs(root):
        if not any(entry.iterdir()):
            entry.rmdir()

    if moves:
        logger.info(f"Rebalanced {len(ordered)} images: {moves} moved")

    return moves
