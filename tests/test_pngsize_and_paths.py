"""
Unit tests for PNG header inspection and path sandboxing.
"""
import pytest

from paintwall.errors import FormatError, InvalidPathError
from paintwall.paths import resolve_basename, resolve_within, to_relative
from paintwall.pngsize import read_png_size


class TestReadPngSize:

    def test_reads_ihdr_dimensions(self, tmp_path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(png_bytes(1024, 768))
        assert read_png_size(path) == (1024, 768)

    def test_rejects_missing_signature(self, tmp_path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(b"GIF89a" + png_bytes()[6:])
        with pytest.raises(FormatError):
            read_png_size(path)

    def test_rejects_truncated_header(self, tmp_path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(png_bytes()[:20])
        with pytest.raises(FormatError):
            read_png_size(path)

    def test_rejects_zero_dimension(self, tmp_path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(png_bytes(0, 400))
        with pytest.raises(FormatError):
            read_png_size(path)

    def test_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(OSError):
            read_png_size(tmp_path / "nope.png")


class TestResolveWithin:

    def test_nested_batch_path_resolves_inside_root(self, upload_root):
        resolved = resolve_within(upload_root, "batch-0001/x.png")
        assert resolved == upload_root.resolve() / "batch-0001" / "x.png"

    @pytest.mark.parametrize("user_path", [
        "../../etc/passwd",
        "..",
        "/etc/passwd",
        "%2e%2e/%2e%2e/etc/passwd",
        "..%2F..%2Fetc%2Fpasswd",
        "batch-0001/../../secret.png",
        "..\\..\\windows\\system.ini",
        "C:\\windows\\system.ini",
    ])
    def test_rejects_escaping_paths(self, upload_root, user_path):
        with pytest.raises(InvalidPathError):
            resolve_within(upload_root, user_path)

    def test_inner_traversal_that_stays_inside_is_allowed(self, upload_root):
        resolved = resolve_within(upload_root, "batch-0001/../batch-0002/x.png")
        assert resolved == upload_root.resolve() / "batch-0002" / "x.png"

    def test_empty_path_is_root(self, upload_root):
        assert resolve_within(upload_root, "") == upload_root.resolve()

    def test_percent_encoded_names_are_decoded(self, upload_root):
        resolved = resolve_within(upload_root, "batch-0001/my%20drawing.png")
        assert resolved.name == "my drawing.png"

    def test_already_decoded_names_are_taken_literally(self, upload_root):
        resolved = resolve_within(upload_root, "batch-0001/my%20drawing.png", decode=False)
        assert resolved.name == "my%20drawing.png"

    def test_traversal_rejected_without_decoding(self, upload_root):
        with pytest.raises(InvalidPathError):
            resolve_within(upload_root, "../../etc/passwd", decode=False)


class TestResolveBasename:

    def test_keeps_only_last_component(self, upload_root):
        assert resolve_basename(upload_root, "batch-0001/x.png") == upload_root.resolve() / "x.png"
        assert resolve_basename(upload_root, "../../x.png") == upload_root.resolve() / "x.png"

    @pytest.mark.parametrize("name", ["", "..", ".", "/"])
    def test_rejects_empty_or_dot_names(self, upload_root, name):
        with pytest.raises(InvalidPathError):
            resolve_basename(upload_root, name)


def test_to_relative_uses_forward_slashes(upload_root):
    path = upload_root / "batch-0003" / "x.png"
    assert to_relative(upload_root, path) == "batch-0003/x.png"
