"""
Persistence module for Paintwall.

Manages:
- JSON-file records (trash manifest, batch selection) with atomic writes
- Admin sessions (in memory, lost on restart)
"""

import json
import logging
import secrets
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Any, Optional

from .errors import CorruptRecordError

logger = logging.getLogger(__name__)


# ============================================
# JSON RECORDS
# ============================================

class JsonFileStore:
    """
    A single JSON record kept in one file.

    By default load() never fails on a missing or corrupt file; it returns a
    copy of the default instead so read-only callers can always proceed.
    """

    def __init__(self, path: Path, default: Any):
        self.path = Path(path)
        self.default = default

    def load(self, strict: bool = False) -> Any:
        """
        Load the record, or the default if the file is absent or unreadable.

        With strict=True an unreadable file raises CorruptRecordError instead,
        so callers about to save never overwrite data they could not read.
        """
        if not self.path.exists():
            return deepcopy(self.default)

        try:
            with open(self.path, encoding="utf-8") as f:
                raw = f.read()
            return json.loads(raw) if raw.strip() else deepcopy(self.default)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Error reading {self.path}: {e}")
            if strict:
                raise CorruptRecordError(f"{self.path.name} is unreadable")
            return deepcopy(self.default)

    def save(self, record: Any):
        """Save the record atomically (write temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2, ensure_ascii=False)
        temp_file.replace(self.path)


# ============================================
# ADMIN SESSIONS
# ============================================

def verify_password(candidate: str, expected: str) -> bool:
    """Constant-time password comparison."""
    return secrets.compare_digest(
        (candidate or "").encode("utf-8"),
        (expected or "").encode("utf-8"),
    )


class SessionStore(ABC):
    """Session token storage used by the login gate."""

    @abstractmethod
    def create(self) -> str:
        """Create a session. Returns the token."""

    @abstractmethod
    def get(self, token: Optional[str]) -> Optional[datetime]:
        """Return the expiry of a live session, or None."""

    @abstractmethod
    def revoke(self, token: Optional[str]) -> bool:
        """Delete a session. Returns True if it existed."""


class MemorySessionStore(SessionStore):
    """In-process session store; every token is invalidated on restart."""

    def __init__(self, ttl: timedelta = timedelta(hours=12)):
        self.ttl = ttl
        self._sessions: dict[str, datetime] = {}
        self._lock = Lock()

    def _purge_expired(self, now: datetime):
        expired = [t for t, expires_at in self._sessions.items() if expires_at <= now]
        for token in expired:
            del self._sessions[token]

    def create(self) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.utcnow()
        with self._lock:
            self._purge_expired(now)
            self._sessions[token] = now + self.ttl
        return token

    def get(self, token: Optional[str]) -> Optional[datetime]:
        if not token:
            return None
        now = datetime.utcnow()
        with self._lock:
            self._purge_expired(now)
            return self._sessions.get(token)

    def revoke(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
