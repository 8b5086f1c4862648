import logging
import mimetypes
import time
import urllib.parse
from typing import AsyncIterator, Dict, List, Optional

from transfer import manifest
from transfer.config import TransferConfig
from transfer.errors import FetchFailure
from transfer.pool import WorkerPool
from transfer.reference import DirectReference, ManifestReference, TransferReference

log = logging.getLogger("DiscordDisk.download")

OCTET_STREAM = "application/octet-stream"


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or OCTET_STREAM


def is_previewable(content_type: str) -> bool:
    return (content_type.startswith("image/") or
            content_type.startswith("video/") or
            content_type.startswith("audio/") or
            content_type == "application/pdf")


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    value = f'{disposition}; filename="{ascii_name}"'
    if ascii_name != filename:
        value += f"; filename*=UTF-8''{urllib.parse.quote(filename, safe='')}"
    return value


class Download:
    """A resolved download: response metadata plus an ordered byte source."""

    def __init__(self, orchestrator: "DownloadOrchestrator", filename: str, content_type: str,
                 inline: bool, handles: List[str], reference: TransferReference):
        self._orchestrator = orchestrator
        self.filename = filename
        self.content_type = content_type
        self.inline = inline
        self.handles = handles
        self.reference = reference

    def headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": self.content_type,
            "Accept-Ranges": "bytes",
        }
        if not self.inline:
            headers["Content-Disposition"] = content_disposition(self.filename)
        return headers

    def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the file in original order.

        Every piece is fetched before the first one is yielded, so a fetch
        failure surfaces on the first step of the iteration.
        """
        return self._orchestrator._stream_pieces(self.filename, self.handles)

    async def read(self) -> bytes:
        return b"".join([data async for data in self.iter_bytes()])


class DownloadOrchestrator:
    def __init__(self, store, config: TransferConfig):
        self.store = store
        self.config = config

    async def _fetch(self, handle: str) -> bytes:
        try:
            return await self.store.fetch(handle)
        except Exception as e:
            raise FetchFailure(handle, e) from e

    async def download(self, reference: TransferReference) -> Download:
        if isinstance(reference, DirectReference):
            content_type = guess_content_type(reference.filename)
            return Download(self, reference.filename, content_type, is_previewable(content_type),
                            [reference.handle], reference)

        if isinstance(reference, ManifestReference):
            try:
                raw = await self._fetch(reference.handle)
                filename, handles = manifest.decode(raw)
            except Exception as e:
                log.error(f"Manifest {reference.handle} unusable: {e}")
                raise
            log.info(f"Manifest {reference.handle}: {filename}, {len(handles)} piece(s)")
            return Download(self, filename, OCTET_STREAM, False, handles, reference)

        raise TypeError(f"Unsupported reference: {reference!r}")

    async def _stream_pieces(self, filename: str, handles: List[str]) -> AsyncIterator[bytes]:
        start_time = time.time()
        pool = WorkerPool(self.config.workers)
        try:
            for handle in handles:
                if await pool.submit(self._fetch, handle) is None:
                    break
        finally:
            parts: List[Optional[bytes]] = await pool.join()

        if pool.error is not None:
            index, exc = pool.error
            log.error(f"Download of {filename} aborted at piece {index}: {exc}")
            raise exc

        total_bytes = 0
        for i in range(len(parts)):
            data = parts[i]
            parts[i] = None
            total_bytes += len(data)
            log.debug(f"{filename}: writing piece {i + 1}/{len(parts)} ({len(data)} bytes)")
            yield data

        elapsed = time.time() - start_time
        log.info(f"Downloaded {filename}: {len(parts)} piece(s), {total_bytes} bytes in {elapsed:.2f}s")
