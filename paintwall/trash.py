"""
Trash bin for uploaded images.

Deleted files are physically moved into <uploads>/trash, mirroring their
original folder, and recorded in trash/manifest.json (newest first).
Restoring moves the file back and drops the record.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .database import JsonFileStore
from .errors import AlreadyTrashedError, CorruptRecordError, InvalidPathError, NotFoundError
from .paths import resolve_within, to_relative
from .storage import unique_filename

logger = logging.getLogger(__name__)

TRASH_DIR_NAME = "trash"
MANIFEST_NAME = "manifest.json"
ID_ALPHABET = string.ascii_lowercase + string.digits


def make_trash_id(now_ms: Optional[int] = None) -> str:
    """Opaque id: trash-<epoch ms>-<6 random chars>."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(6))
    return f"trash-{now_ms}-{suffix}"


@dataclass
class TrashEntry:
    id: str
    filename: str
    original_path: str
    trashed_path: str
    trashed_at: int

    @classmethod
    def from_dict(cls, data: dict) -> Optional["TrashEntry"]:
        """Build an entry from a manifest record; None if the record is unusable."""
        if not isinstance(data, dict) or not data.get("id") or not data.get("trashedPath"):
            return None
        trashed_path = str(data["trashedPath"])
        return cls(
            id=str(data["id"]),
            filename=data.get("filename") or Path(trashed_path).name,
            original_path=data.get("originalPath") or "",
            trashed_path=trashed_path,
            trashed_at=data.get("trashedAt") or 0,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "originalPath": self.original_path,
            "trashedPath": self.trashed_path,
            "trashedAt": self.trashed_at,
        }


class TrashStore:
    """Move-to-trash / restore with a JSON manifest."""

    def __init__(self, upload_root: Path):
        self.upload_root = Path(upload_root)
        self.trash_dir = self.upload_root / TRASH_DIR_NAME
        self.manifest = JsonFileStore(self.trash_dir / MANIFEST_NAME, default=[])

    def _read_manifest(self, strict: bool = False) -> list[dict]:
        """
        Manifest records. Listing tolerates a damaged manifest; move and
        restore pass strict=True so they never save over one.
        """
        records = self.manifest.load(strict=strict)
        if not isinstance(records, list):
            logger.error(f"Trash manifest is not a list, ignoring: {self.manifest.path}")
            if strict:
                raise CorruptRecordError("Trash manifest is not a list")
            return []
        return records

    def _is_in_trash(self, path: Path) -> bool:
        trash_root = self.trash_dir.resolve()
        return path == trash_root or trash_root in path.parents

    def move_to_trash(self, rel_path: str) -> TrashEntry:
        """
        Move an uploaded image into the trash.

        Args:
            rel_path: Path relative to the upload root, e.g. "batch-0001/x.png"

        Returns:
            The new manifest entry

        Raises:
            InvalidPathError: path escapes the upload root
            AlreadyTrashedError: path is inside the trash subtree
            NotFoundError: no such file
            CorruptRecordError: the manifest cannot be read
        """
        source = resolve_within(self.upload_root, rel_path)
        if self._is_in_trash(source):
            raise AlreadyTrashedError()
        if not source.is_file():
            raise NotFoundError(f"File not found: {rel_path}")

        records = self._read_manifest(strict=True)

        original_rel = to_relative(self.upload_root, source)
        target_dir = self.trash_dir / Path(original_rel).parent
        target_dir.mkdir(parents=True, exist_ok=True)

        target_name = unique_filename(source.name, target_dir)
        target = target_dir / target_name
        source.rename(target)

        now_ms = int(time.time() * 1000)
        entry = TrashEntry(
            id=make_trash_id(now_ms),
            filename=target_name,
            original_path=original_rel,
            trashed_path=to_relative(self.upload_root, target),
            trashed_at=now_ms,
        )

        records.insert(0, entry.to_dict())
        self.manifest.save(records)

        logger.info(f"Moved to trash: {original_rel} -> {entry.trashed_path}")
        return entry

    def find(self, entry_id: str, records: Optional[list[dict]] = None) -> Optional[TrashEntry]:
        for record in (self._read_manifest() if records is None else records):
            entry = TrashEntry.from_dict(record)
            if entry and entry.id == entry_id:
                return entry
        return None

    def restore(self, entry_id: str) -> str:
        """
        Move a trashed file back to its original location.

        A name clash at the destination gets a "-1", "-2", ... suffix.

        Returns:
            Restored path relative to the upload root

        Raises:
            NotFoundError: unknown id, or the trashed file is gone
            CorruptRecordError: the manifest cannot be read
        """
        records = self._read_manifest(strict=True)
        entry = self.find(entry_id, records)
        if entry is None:
            raise NotFoundError(f"Trash entry not found: {entry_id}")

        source = resolve_within(self.upload_root, entry.trashed_path)
        if not self._is_in_trash(source):
            raise InvalidPathError("Invalid trash path")
        if not source.is_file():
            raise NotFoundError(f"Trashed file missing: {entry.trashed_path}")

        original_rel = entry.original_path or Path(entry.trashed_path).name
        target = resolve_within(self.upload_root, original_rel)
        if self._is_in_trash(target):
            raise InvalidPathError("Invalid restore target")
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            target = target.parent / unique_filename(target.name, target.parent)

        source.rename(target)

        records = [r for r in records if not (isinstance(r, dict) and r.get("id") == entry_id)]
        self.manifest.save(records)

        restored = to_relative(self.upload_root, target)
        logger.info(f"Restored from trash: {entry.trashed_path} -> {restored}")
        return restored

    def list_entries(self) -> list[dict]:
        """Manifest entries whose trashed file still exists. The manifest is not rewritten."""
        items = []
        for record in self._read_manifest():
            entry = TrashEntry.from_dict(record)
            if entry is None:
                continue
            try:
                if not resolve_within(self.upload_root, entry.trashed_path).is_file():
                    continue
            except InvalidPathError:
                continue

            items.append({
                "id": entry.id,
                "filename": entry.filename,
                "originalPath": entry.original_path,
                "trashedAt": entry.trashed_at or None,
                "url": f"/uploads/{entry.trashed_path}",
            })
        return items
