"""Which batch of images the display overlay is showing."""

import logging
import math
from numbers import Number
from typing import Optional

from .database import JsonFileStore
from .errors import ValidationError

logger = logging.getLogger(__name__)


class BatchSelection:
    """Persisted selected-batch index, stored as {"selectedIndex": int}."""

    def __init__(self, store: JsonFileStore):
        self.store = store

    def _stored_index(self) -> int:
        record = self.store.load()
        value = record.get("selectedIndex") if isinstance(record, dict) else None
        if isinstance(value, bool) or not isinstance(value, Number) or not math.isfinite(value):
            return 0
        return int(value)

    def get_selected_batch_index(self, total_batches: int) -> Optional[int]:
        """
        Selected index clamped into [0, total_batches - 1].

        Returns None when there are no batches.
        """
        if total_batches <= 0:
            return None
        return min(max(self._stored_index(), 0), total_batches - 1)

    def set_selection(self, index) -> int:
        """Persist a new selection. index must be a finite number >= 0."""
        if isinstance(index, bool) or not isinstance(index, Number):
            raise ValidationError("index must be a number")
        if not math.isfinite(index) or index < 0:
            raise ValidationError("index must be a non-negative finite number")

        selected = int(index)
        self.store.save({"selectedIndex": selected})
        logger.info(f"Display batch selected: {selected}")
        return selected
