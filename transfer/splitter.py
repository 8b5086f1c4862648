"""Partitioning of a byte stream into fixed-size pieces."""

import inspect
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass(frozen=True)
class Piece:
    index: int
    data: bytes

    def __len__(self):
        return len(self.data)


async def _read(stream, size: int) -> bytes:
    # Accept both plain file objects and ones with a coroutine read() (aiofiles, aiohttp parts)
    data = stream.read(size)
    if inspect.isawaitable(data):
        data = await data
    return data


async def read_window(stream, size: int) -> bytes:
    """Read until ``size`` bytes are collected or the stream is exhausted.

    Short reads are normal for sockets and multipart bodies, so one call to
    ``read`` is never assumed to fill the window.
    """
    buf = bytearray()
    while len(buf) < size:
        block = await _read(stream, size - len(buf))
        if not block:
            break
        buf += block
    return bytes(buf)


async def split_stream(stream, chunk_size: int) -> AsyncIterator[Piece]:
    """Yield pieces of exactly ``chunk_size`` bytes, except possibly the last.

    A zero-byte stream yields a single empty piece so that every file has at
    least one piece in its manifest.
    """
    index = 0
    while True:
        data = await read_window(stream, chunk_size)
        if not data:
            if index == 0:
                yield Piece(0, b"")
            return
        yield Piece(index, data)
        index += 1
        if len(data) < chunk_size:
            return


def piece_count(size: int, chunk_size: int) -> int:
    if size <= 0:
        return 1
    return (size + chunk_size - 1) // chunk_size
