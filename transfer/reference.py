"""External references to stored files.

A small file is stored as one attachment and referenced directly together with
its filename. A chunked file is referenced through the handle of its manifest.
The kind travels explicitly in the ``file_id`` prefix (``d.`` or ``m.``) so a
download never has to guess it from which query parameters happen to be set.
"""

import hashlib
import urllib.parse
from dataclasses import dataclass
from typing import Optional, Union

from transfer.errors import InputError

DIRECT_PREFIX = "d"
MANIFEST_PREFIX = "m"

# Message labels posted alongside each stored attachment
DIRECT_LABEL = "file"
PIECE_LABEL = "blob"
MANIFEST_LABEL = "manifest"

DOWNLOAD_PATH = "/d"


@dataclass(frozen=True)
class DirectReference:
    handle: str
    filename: str

    @property
    def file_id(self) -> str:
        return f"{DIRECT_PREFIX}.{self.handle}"


@dataclass(frozen=True)
class ManifestReference:
    handle: str

    @property
    def file_id(self) -> str:
        return f"{MANIFEST_PREFIX}.{self.handle}"


TransferReference = Union[DirectReference, ManifestReference]


def parse_reference(file_id: Optional[str], filename: Optional[str] = None) -> TransferReference:
    if not file_id or not file_id.strip():
        raise InputError("Missing file_id")
    kind, sep, handle = file_id.strip().partition(".")
    if not sep or not handle:
        raise InputError(f"Malformed file_id: {file_id!r}")
    if kind == DIRECT_PREFIX:
        if not filename:
            raise InputError("A direct file_id needs a filename")
        return DirectReference(handle, filename)
    if kind == MANIFEST_PREFIX:
        return ManifestReference(handle)
    raise InputError(f"Unknown file_id kind {kind!r}")


def reference_for_label(label: Optional[str], handle: str, filename: str) -> Optional[TransferReference]:
    """Classify a stored message by its label; pieces have no external reference."""
    label = (label or "").strip()
    if label == MANIFEST_LABEL:
        return ManifestReference(handle)
    if label == PIECE_LABEL:
        return None
    return DirectReference(handle, filename)


def download_url(base_url: str, reference: TransferReference) -> str:
    params = {"file_id": reference.file_id}
    if isinstance(reference, DirectReference):
        params["filename"] = reference.filename
    return f"{base_url.rstrip('/')}{DOWNLOAD_PATH}?{urllib.parse.urlencode(params)}"


def path_file_id(rel_path: str) -> str:
    return hashlib.sha256(rel_path.encode('utf-8')).hexdigest()[:10]


def make_piece_filename(filename: str, index: int) -> str:
    return f"fs_{path_file_id(filename)}_{index}.chunk"


def make_manifest_filename(filename: str) -> str:
    return f"{filename}.manifest"
