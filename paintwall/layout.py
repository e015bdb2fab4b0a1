"""
Slot layout for the display overlay.

Maps the ordered images onto fixed display positions. Two modes:

- slots: positions come from slot definitions (slot.json); each slot gives a
  row/col and may override x/y/w/h in stage pixels
- grid: positions are derived from the column count alone; rows take the
  height of their tallest image

Pixel values are computed unrounded and rounded half-up only on output, so
clients get the same coordinates for the same inputs.
"""

import json
import logging
import math
from dataclasses import dataclass
from numbers import Number
from pathlib import Path
from typing import Callable, Optional

from .errors import ConfigurationError, FormatError
from .storage import ImageRecord

logger = logging.getLogger(__name__)

SizeReader = Callable[[ImageRecord], tuple[int, int]]


@dataclass
class LayoutParams:
    """Stage geometry, in stage pixels."""
    stage_width: float = 4728
    stage_height: float = 5760
    overlay_left: float = 1152
    overlay_width: float = 3576
    overlay_height: float = 5760
    padding_top: float = 100
    padding_left: float = 100
    padding_right: float = 100
    gap: float = 50
    columns: int = 6
    slot_count: int = 24
    default_image_width: float = 600
    default_image_height: float = 400

    @classmethod
    def from_config(cls, layout: dict) -> "LayoutParams":
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in layout.items() if k in fields})

    @property
    def cell_width(self) -> float:
        return (
            self.overlay_width - self.padding_left - self.padding_right
            - self.gap * (self.columns - 1)
        ) / self.columns

    @property
    def cell_height(self) -> float:
        """Cell height at the default image aspect ratio."""
        return self.cell_width * self.default_image_height / self.default_image_width

    @property
    def left_origin(self) -> float:
        return self.overlay_left + self.padding_left


@dataclass
class SlotDefinition:
    slot: int
    row: Optional[float]
    col: Optional[float]
    x: Optional[float] = None
    y: Optional[float] = None
    w: Optional[float] = None
    h: Optional[float] = None
    disabled: bool = False

    @property
    def is_active(self) -> bool:
        return not self.disabled and self.row is not None and self.col is not None


def round_layout_value(value: float) -> int:
    """Round half up, matching what display clients expect (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def _finite(value) -> Optional[float]:
    """value if it is a real finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, Number):
        return None
    return value if math.isfinite(value) else None


def _coordinate(value) -> Optional[float]:
    """Row/col value; numeric strings are accepted."""
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    return _finite(value)


# ============================================
# SLOT DEFINITIONS
# ============================================

def parse_slot_definitions(raw, min_slots: int) -> list[SlotDefinition]:
    """
    Validate slot definitions loaded from JSON.

    Args:
        raw: A list of slot objects or {"slots": [...]}
        min_slots: Fewest entries the file may contain

    Returns:
        Slot definitions sorted by slot number

    Raises:
        ConfigurationError: wrong shape, too few slots, or an enabled slot
            without row/col
    """
    slots = raw.get("slots") if isinstance(raw, dict) else raw
    if not isinstance(slots, list):
        raise ConfigurationError("Slot file must be an array or { slots: [...] }")
    if len(slots) < min_slots:
        raise ConfigurationError(f"Slot file must contain at least {min_slots} slots")

    definitions = []
    for position, slot in enumerate(slots):
        slot = slot if isinstance(slot, dict) else {}
        disabled = slot.get("disabled") is True or slot.get("enabled") is False
        row = _coordinate(slot.get("row"))
        col = _coordinate(slot.get("col"))
        if not disabled and (row is None or col is None):
            raise ConfigurationError(f"Slot {position + 1} missing row/col")

        number = _finite(slot.get("slot"))
        definitions.append(SlotDefinition(
            slot=number if number is not None else position + 1,
            row=row,
            col=col,
            x=_finite(slot.get("x")),
            y=_finite(slot.get("y")),
            w=_finite(slot.get("w")),
            h=_finite(slot.get("h")),
            disabled=disabled,
        ))

    definitions.sort(key=lambda d: d.slot)
    return definitions


def load_slot_definitions(path: Path, min_slots: int) -> list[SlotDefinition]:
    """Read and validate the slot file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = f.read()
    except FileNotFoundError:
        raise ConfigurationError(f"{path.name} not found")

    try:
        parsed = json.loads(raw) if raw.strip() else []
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path.name} is not valid JSON: {e}")

    return parse_slot_definitions(parsed, min_slots)


# ============================================
# LAYOUT
# ============================================

def _native_size(record: ImageRecord, size_of: SizeReader) -> Optional[tuple[int, int]]:
    try:
        return size_of(record)
    except (FormatError, OSError) as e:
        logger.debug(f"Using default aspect ratio for {record.path}: {e}")
        return None


def _item(record: ImageRecord, row, col, x, y, w, h) -> dict:
    return {
        "filename": record.filename,
        "path": record.path,
        "row": row,
        "col": col,
        "x": round_layout_value(x),
        "y": round_layout_value(y),
        "w": round_layout_value(w),
        "h": round_layout_value(h),
        "updatedAt": record.updated_at_ms,
        "url": record.url,
    }


def _int_if_whole(value: float):
    return int(value) if float(value).is_integer() else value


def layout_slots(slots: list[SlotDefinition], images: list[ImageRecord],
                 params: LayoutParams, size_of: SizeReader) -> list[dict]:
    """
    Position images into configured slots, one image per slot, in order.

    Explicit slot x/y/w/h win over grid-derived values. Heights follow the
    image's real aspect ratio when its PNG header is readable.

    Raises:
        ConfigurationError: fewer than params.slot_count enabled slots
    """
    active = [slot for slot in slots if slot.is_active]
    if len(active) < params.slot_count:
        raise ConfigurationError(
            f"Slot file must have at least {params.slot_count} enabled slots"
        )

    visible_slots = active[:params.slot_count]
    visible_images = images[:params.slot_count]
    count = min(len(visible_slots), len(visible_images))

    cell_width = params.cell_width
    cell_height = params.cell_height

    items = []
    for slot, record in zip(visible_slots[:count], visible_images[:count]):
        width = slot.w if slot.w is not None else cell_width
        height = slot.h if slot.h is not None else cell_height

        native = _native_size(record, size_of)
        if native:
            native_width, native_height = native
            height = width * native_height / native_width

        x = slot.x if slot.x is not None else params.left_origin + slot.col * (cell_width + params.gap)
        y = slot.y if slot.y is not None else params.padding_top + slot.row * (cell_height + params.gap)

        items.append(_item(record, _int_if_whole(slot.row), _int_if_whole(slot.col),
                           x, y, width, height))

    return items


def layout_grid(images: list[ImageRecord], params: LayoutParams,
                size_of: SizeReader) -> list[dict]:
    """
    Position images on a computed grid, filling rows left to right.

    Each image is one cell wide; its height follows its aspect ratio (square
    if unreadable). A row is as tall as its tallest image.
    """
    visible = images[:params.slot_count]
    if not visible:
        return []

    cell_width = params.cell_width
    placed = []
    row_heights: dict[int, float] = {}

    for index, record in enumerate(visible):
        col = index % params.columns
        row = index // params.columns

        native = _native_size(record, size_of)
        height = cell_width * native[1] / native[0] if native else cell_width

        row_heights[row] = max(row_heights.get(row, 0), height)
        placed.append((record, row, col, height))

    row_offsets = {}
    y = params.padding_top
    for row in sorted(row_heights):
        row_offsets[row] = y
        y += row_heights[row] + params.gap

    return [
        _item(record, row, col,
              params.left_origin + col * (cell_width + params.gap),
              row_offsets[row], cell_width, height)
        for record, row, col, height in placed
    ]
