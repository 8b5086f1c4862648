"""Tests for transfer references and download links."""

import urllib.parse

import pytest

from transfer.errors import InputError
from transfer.reference import (
    DIRECT_LABEL,
    MANIFEST_LABEL,
    PIECE_LABEL,
    DirectReference,
    ManifestReference,
    download_url,
    make_manifest_filename,
    make_piece_filename,
    parse_reference,
    reference_for_label,
)


def test_file_ids_carry_their_kind():
    assert DirectReference("42", "a.txt").file_id == "d.42"
    assert ManifestReference("43").file_id == "m.43"


def test_parse_direct():
    assert parse_reference("d.42", "a.txt") == DirectReference("42", "a.txt")


def test_parse_manifest_ignores_filename():
    assert parse_reference("m.43") == ManifestReference("43")
    assert parse_reference("m.43", "whatever.txt") == ManifestReference("43")


@pytest.mark.parametrize("file_id,filename", [
    (None, None),
    ("", None),
    ("42", "a.txt"),
    ("m.", None),
    ("x.42", None),
    ("d.42", None),
    ("d.42", ""),
])
def test_parse_rejects_ambiguous_or_malformed(file_id, filename):
    with pytest.raises(InputError):
        parse_reference(file_id, filename)


def test_download_url_for_direct_reference():
    url = download_url("https://disk.example/", DirectReference("42", "my file.txt"))

    parsed = urllib.parse.urlparse(url)
    assert parsed.path == "/d"
    assert urllib.parse.parse_qs(parsed.query) == {"file_id": ["d.42"], "filename": ["my file.txt"]}


def test_download_url_for_manifest_reference():
    url = download_url("http://localhost:8080", ManifestReference("43"))

    assert url == "http://localhost:8080/d?file_id=m.43"


def test_reference_for_label():
    assert reference_for_label(MANIFEST_LABEL, "1", "x.manifest") == ManifestReference("1")
    assert reference_for_label(DIRECT_LABEL, "2", "x.txt") == DirectReference("2", "x.txt")
    assert reference_for_label(None, "3", "y.txt") == DirectReference("3", "y.txt")
    assert reference_for_label(PIECE_LABEL, "4", "fs_x_0.chunk") is None


def test_attachment_names():
    assert make_manifest_filename("a.bin") == "a.bin.manifest"
    name = make_piece_filename("a.bin", 3)
    assert name.startswith("fs_") and name.endswith("_3.chunk")
    assert make_piece_filename("a.bin", 3) == name
