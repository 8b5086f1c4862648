"""Tests for the manifest text format."""

import pytest

from transfer import manifest
from transfer.errors import FormatError


@pytest.mark.parametrize("count", [1, 2, 100])
def test_round_trip(count):
    handles = [str(1000 + i) for i in range(count)]

    raw = manifest.encode("movie.mkv", handles)

    assert manifest.decode(raw) == ("movie.mkv", handles)


def test_encoded_layout():
    raw = manifest.encode("a.bin", ["11", "22"])

    assert raw == b"a.bin\n11\n22\n"


def test_trailing_blank_lines_are_ignored():
    raw = manifest.encode("a.bin", ["11", "22"]) + b"\n\n  \n"

    assert manifest.decode(raw) == ("a.bin", ["11", "22"])


def test_windows_line_endings():
    raw = b"report.pdf\r\n11\r\n\r\n22\r\n"

    assert manifest.decode(raw) == ("report.pdf", ["11", "22"])


def test_unicode_filename():
    raw = manifest.encode("文件.zip", ["7"])

    assert manifest.decode(raw) == ("文件.zip", ["7"])


@pytest.mark.parametrize("raw", [b"", b"\n\n", b"only-a-name\n", b"  name  \n\n"])
def test_decode_needs_filename_and_handle(raw):
    with pytest.raises(FormatError):
        manifest.decode(raw)


def test_decode_rejects_invalid_utf8():
    with pytest.raises(FormatError):
        manifest.decode(b"\xff\xfe\n11\n")


def test_encode_rejects_empty_handle_list():
    with pytest.raises(FormatError):
        manifest.encode("a.bin", [])


@pytest.mark.parametrize("filename,handles", [
    ("two\nlines", ["1"]),
    ("a.bin", ["1\r2"]),
    ("", ["1"]),
])
def test_encode_rejects_values_that_would_not_round_trip(filename, handles):
    with pytest.raises(FormatError):
        manifest.encode(filename, handles)
