"""Read PNG dimensions from the IHDR chunk without decoding the image."""

import struct
from pathlib import Path

from .errors import FormatError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
HEADER_LENGTH = 24


def read_png_size(path: Path) -> tuple[int, int]:
    """
    Return (width, height) of the PNG at path.

    Raises:
        FormatError: file is too short, lacks the PNG signature, or reports
            a zero dimension.
        OSError: file cannot be opened.
    """
    with open(path, "rb") as f:
        header = f.read(HEADER_LENGTH)

    if len(header) < HEADER_LENGTH:
        raise FormatError("Truncated PNG header")
    if header[:8] != PNG_SIGNATURE:
        raise FormatError("Not a PNG")

    width, height = struct.unpack(">II", header[16:24])
    if width == 0 or height == 0:
        raise FormatError("Invalid PNG size")

    return width, height
