"""Tests for source input resolution."""

import io
from pathlib import Path

import pytest

from stylus_bridge.exceptions import InvalidSourceError
from stylus_bridge.exit_codes import ExitCode
from stylus_bridge.source import NamedFile, Readable, Text, resolve_source


class TestResolveSource:
    """Test classification of raw values."""

    def test_string_is_text(self):
        source = resolve_source("body\n  color red\n")
        assert source == Text("body\n  color red\n")
        assert source.filename is None

    def test_path_is_named_file(self, tmp_path):
        path = tmp_path / "app.styl"
        source = resolve_source(path)
        assert isinstance(source, NamedFile)
        assert source.filename == str(path.resolve())

    def test_open_file_is_readable_with_name(self, tmp_path):
        path = tmp_path / "app.styl"
        path.write_text("a\n  b c\n")
        with open(path) as handle:
            source = resolve_source(handle)
            assert isinstance(source, Readable)
            assert source.filename == str(path.resolve())
            assert source.read() == "a\n  b c\n"

    def test_stringio_has_no_filename(self):
        source = resolve_source(io.StringIO("x"))
        assert isinstance(source, Readable)
        assert source.filename is None

    def test_pseudo_names_are_ignored(self):
        handle = io.StringIO("x")
        handle.name = "<stdin>"
        assert resolve_source(handle).filename is None

    def test_descriptor_names_are_ignored(self):
        handle = io.StringIO("x")
        handle.name = 0
        assert resolve_source(handle).filename is None

    def test_variants_pass_through(self):
        text = Text("x")
        assert resolve_source(text) is text

    @pytest.mark.parametrize("value", [None, 42, b"bytes", ["list"]])
    def test_unsupported_values(self, value):
        with pytest.raises(InvalidSourceError) as exc_info:
            resolve_source(value)
        assert "Unsupported source type" in exc_info.value.message


class TestReading:
    """Test reading each variant."""

    def test_named_file_reads_utf8(self, tmp_path):
        path = tmp_path / "app.styl"
        path.write_text("content: \"é\"\n", encoding="utf-8")
        assert NamedFile(path).read() == "content: \"é\"\n"

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidSourceError) as exc_info:
            NamedFile(tmp_path / "missing.styl").read()
        assert exc_info.value.details["path"].endswith("missing.styl")
        assert exc_info.value.exit_code == ExitCode.NOT_FOUND

    def test_directory_is_unreadable(self, tmp_path):
        with pytest.raises(InvalidSourceError) as exc_info:
            NamedFile(tmp_path).read()
        assert exc_info.value.exit_code == ExitCode.INVALID_ARGUMENT

    def test_bytes_are_decoded(self):
        assert Readable(io.BytesIO("é".encode("utf-8"))).read() == "é"

    def test_invalid_utf8(self):
        with pytest.raises(InvalidSourceError):
            Readable(io.BytesIO(b"\xff\xfe")).read()

    def test_closed_handle(self):
        handle = io.StringIO("x")
        handle.close()
        with pytest.raises(InvalidSourceError):
            Readable(handle).read()

    def test_read_returning_non_string(self):
        class Weird:
            def read(self):
                return 42

        with pytest.raises(InvalidSourceError) as exc_info:
            resolve_source(Weird()).read()
        assert "int" in exc_info.value.message

    def test_named_file_expands_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "a.styl").write_text("x")
        source = NamedFile(Path("~/a.styl"))
        assert source.read() == "x"
        assert source.filename == str((tmp_path / "a.styl").resolve())
