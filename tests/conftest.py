"""Shared fixtures: temporary upload roots, PNG bytes and configured test clients."""

import base64
import json
import os
import struct
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from paintwall.config import deep_merge, load_config
from paintwall.gallery import Gallery
from paintwall.server import create_app

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def make_png(width: int = 600, height: int = 400) -> bytes:
    """Signature plus an IHDR chunk; enough for header inspection."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return PNG_SIGNATURE + struct.pack(">I", 13) + b"IHDR" + ihdr + b"\x00\x00\x00\x00"


@pytest.fixture
def png_bytes():
    return make_png


@pytest.fixture
def write_png():
    """Write a PNG at root/rel_path with a fixed modification time."""
    def _write(root: Path, rel_path: str, mtime: float, width: int = 600, height: int = 400) -> Path:
        path = Path(root) / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(make_png(width, height))
        os.utime(path, (mtime, mtime))
        return path
    return _write


@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def gallery(tmp_path, upload_root):
    return Gallery(upload_root, tmp_path / "data", folder_size=24)


@pytest.fixture
def slot_file(tmp_path):
    path = tmp_path / "slot.json"
    slots = [{"slot": i + 1, "row": i // 6, "col": i % 6} for i in range(24)]
    path.write_text(json.dumps(slots))
    return path


@pytest.fixture
def make_config(tmp_path, monkeypatch):
    monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)

    def _make(**overrides):
        base = {
            "paths": {
                "uploads": str(tmp_path / "uploads"),
                "public": str(tmp_path / "public"),
                "data": str(tmp_path / "data"),
                "slots": str(tmp_path / "slot.json"),
            },
        }
        return load_config(tmp_path / "missing.yaml", overrides=deep_merge(base, overrides))
    return _make


@pytest.fixture
def client(make_config):
    with TestClient(create_app(make_config())) as c:
        yield c


@pytest.fixture
def auth_client(make_config):
    config = make_config(auth={"password": "letmein"})
    with TestClient(create_app(config)) as c:
        yield c


@pytest.fixture
def to_data_url():
    def _encode(payload: bytes) -> str:
        return "data:image/png;base64," + base64.b64encode(payload).decode("ascii")
    return _encode
