import io
import logging
import time
from typing import Optional

from transfer import manifest
from transfer.config import TransferConfig
from transfer.errors import InputError, StoreFailure
from transfer.pool import WorkerPool
from transfer.reference import (
    DIRECT_LABEL,
    MANIFEST_LABEL,
    PIECE_LABEL,
    DirectReference,
    ManifestReference,
    TransferReference,
    make_manifest_filename,
    make_piece_filename,
)
from transfer.splitter import Piece, read_window, split_stream

log = logging.getLogger("DiscordDisk.upload")


class UploadOrchestrator:
    """Stores a byte stream in the blob store and returns one reference to it.

    Files whose declared size fits in a single piece are stored as-is. Anything
    else is split, the pieces are stored concurrently, and a manifest listing
    their handles in split order is stored last.
    """

    def __init__(self, store, config: TransferConfig):
        self.store = store
        self.config = config

    async def upload(self, filename: str, stream, declared_size: Optional[int] = None) -> TransferReference:
        if not filename or not filename.strip():
            raise InputError("Filename cannot be empty")
        if "\n" in filename or "\r" in filename:
            raise InputError("Filename cannot contain line breaks")
        if declared_size is not None and declared_size < 0:
            raise InputError(f"Declared size cannot be negative: {declared_size}")

        if declared_size is not None and 0 < declared_size <= self.config.chunk_size:
            return await self._upload_direct(filename, stream)
        return await self._upload_chunked(filename, stream)

    async def _upload_direct(self, filename, stream) -> TransferReference:
        chunk_size = self.config.chunk_size
        # One byte past the ceiling tells a lying size header apart from an exact fit
        data = await read_window(stream, chunk_size + 1)
        if len(data) > chunk_size:
            raise InputError(f"Payload is larger than its declared size (limit {chunk_size} bytes)")
        if not data:
            # Size came from an envelope around an empty file
            return await self._upload_chunked(filename, io.BytesIO(b""))
        try:
            handle = await self.store.store(data, filename, label=DIRECT_LABEL)
        except Exception as e:
            log.error(f"Direct upload of {filename} failed: {e}")
            raise StoreFailure(0, e) from e
        log.info(f"Uploaded {filename} directly ({len(data)} bytes) as {handle}")
        return DirectReference(handle, filename)

    async def _store_piece(self, filename: str, piece: Piece) -> str:
        handle = await self.store.store(piece.data, make_piece_filename(filename, piece.index), label=PIECE_LABEL)
        log.debug(f"{filename}: piece {piece.index} ({len(piece)} bytes) -> {handle}")
        return handle

    async def _upload_chunked(self, filename, stream) -> ManifestReference:
        start_time = time.time()
        pool = WorkerPool(self.config.workers)
        total_bytes = 0
        try:
            async for piece in split_stream(stream, self.config.chunk_size):
                if await pool.submit(self._store_piece, filename, piece) is None:
                    break
                total_bytes += len(piece)
        finally:
            handles = await pool.join()

        if pool.error is not None:
            index, exc = pool.error
            log.error(f"Upload of {filename} aborted: piece {index} failed: {exc}")
            raise StoreFailure(index, exc) from exc

        data = manifest.encode(filename, handles)
        try:
            manifest_handle = await self.store.store(data, make_manifest_filename(filename), label=MANIFEST_LABEL)
        except Exception as e:
            log.error(f"Upload of {filename} aborted: manifest failed: {e}")
            raise StoreFailure(None, e) from e

        elapsed = time.time() - start_time
        log.info(
            f"Uploaded {filename}: {len(handles)} piece(s), {total_bytes} bytes "
            f"in {elapsed:.2f}s, manifest {manifest_handle}"
        )
        return ManifestReference(manifest_handle)
