"""Text manifest listing the piece handles of a chunked file.

Layout (UTF-8)::

    original-filename
    handle-0
    handle-1
    ...
"""

from typing import List, Sequence, Tuple

from transfer.errors import FormatError


def _check_line(value: str, what: str):
    if not value or not value.strip():
        raise FormatError(f"Manifest {what} cannot be empty")
    if "\n" in value or "\r" in value:
        raise FormatError(f"Manifest {what} cannot contain line breaks: {value!r}")


def encode(filename: str, handles: Sequence[str]) -> bytes:
    if not handles:
        raise FormatError("Manifest needs at least one piece handle")
    _check_line(filename, "filename")
    for handle in handles:
        _check_line(handle, "handle")
    lines = [filename, *handles]
    return ("\n".join(lines) + "\n").encode("utf-8")


def decode(raw: bytes) -> Tuple[str, List[str]]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Manifest is not valid UTF-8: {e}") from e

    lines = [line.strip() for line in text.strip().splitlines()]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        raise FormatError("Manifest must contain a filename and at least one piece handle")
    return lines[0], lines[1:]
