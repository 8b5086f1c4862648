"""HTTP front end: password check, streamed upload, ordered download."""

import hmac
import logging
from pathlib import Path
from typing import Optional

from aiohttp import web

from transfer import DownloadOrchestrator, UploadOrchestrator
from transfer.errors import InputError, TransferError
from transfer.reference import DOWNLOAD_PATH, download_url, parse_reference

log = logging.getLogger("DiscordDisk.web")

UPLOADER_KEY = web.AppKey("uploader", UploadOrchestrator)
DOWNLOADER_KEY = web.AppKey("downloader", DownloadOrchestrator)
ACCESS_PWD_KEY = web.AppKey("access_pwd", str)
BASE_URL_KEY = web.AppKey("base_url", str)


class _PartStream:
    """Adapts a multipart body part to the ``read(n)`` interface the splitter expects.

    ``read_chunk`` refuses sizes smaller than the boundary, so the part is always
    read in its own default chunk size and the surplus is served from a buffer.
    """

    def __init__(self, part):
        self.part = part
        self._buffer = b""

    async def read(self, size: int) -> bytes:
        if not self._buffer:
            self._buffer = await self.part.read_chunk()
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data


def _password_ok(request: web.Request, supplied: Optional[str]) -> bool:
    expected = request.app[ACCESS_PWD_KEY]
    return hmac.compare_digest((supplied or "").encode("utf-8"), expected.encode("utf-8"))


def get_base_url(request: web.Request) -> str:
    base_url = request.app[BASE_URL_KEY]
    if base_url:
        return base_url
    scheme = request.headers.get("X-Forwarded-Proto") or request.scheme
    return f"{scheme}://{request.host}"


async def handle_verify(request: web.Request) -> web.Response:
    form = await request.post()
    if _password_ok(request, form.get("pwd")):
        return web.Response(text="ok")
    return web.Response(status=401, text="Wrong password")


async def handle_upload(request: web.Request) -> web.Response:
    if not request.content_type.startswith("multipart/"):
        return web.Response(status=400, text="Expected a multipart/form-data body")

    reader = await request.multipart()
    fields = {}
    part = await reader.next()
    # Text fields precede the file part; only the file is streamed
    while part is not None and part.filename is None:
        fields[part.name] = await part.text()
        part = await reader.next()

    if not _password_ok(request, fields.get("pwd")):
        return web.Response(status=401, text="Wrong password")
    if part is None or part.name != "file":
        return web.Response(status=400, text="Missing file field")

    declared_size = None
    if fields.get("size"):
        try:
            declared_size = int(fields["size"])
        except ValueError:
            return web.Response(status=400, text=f"Invalid size: {fields['size']!r}")
    elif request.content_length:
        # Whole request body, so never smaller than the file itself
        declared_size = request.content_length

    filename = Path(part.filename).name
    uploader = request.app[UPLOADER_KEY]
    try:
        reference = await uploader.upload(filename, _PartStream(part), declared_size)
    except InputError as e:
        return web.Response(status=400, text=str(e))
    except Exception as e:
        log.error(f"Upload of {filename} failed: {e}", exc_info=not isinstance(e, TransferError))
        return web.Response(status=500, text=f"Upload failed: {e}")

    return web.json_response({
        "filename": filename,
        "file_id": reference.file_id,
        "download_url": download_url(get_base_url(request), reference),
    })


async def handle_download(request: web.Request) -> web.StreamResponse:
    try:
        reference = parse_reference(request.query.get("file_id"), request.query.get("filename"))
    except InputError as e:
        return web.Response(status=400, text=str(e))

    downloader = request.app[DOWNLOADER_KEY]
    try:
        download = await downloader.download(reference)
        pieces = download.iter_bytes()
        first = await anext(pieces, None)
    except Exception as e:
        log.error(f"Download of {reference.file_id} failed: {e}", exc_info=not isinstance(e, TransferError))
        return web.Response(status=500, text=f"Download failed: {e}")

    response = web.StreamResponse(headers=download.headers())
    await response.prepare(request)
    try:
        if first is not None:
            await response.write(first)
        async for data in pieces:
            await response.write(data)
    except ConnectionResetError:
        log.warning(f"Client went away while downloading {download.filename}")
        return response
    await response.write_eof()
    return response


def create_app(uploader: UploadOrchestrator, downloader: DownloadOrchestrator,
               access_pwd: str, base_url: Optional[str] = None) -> web.Application:
    app = web.Application()
    app[UPLOADER_KEY] = uploader
    app[DOWNLOADER_KEY] = downloader
    app[ACCESS_PWD_KEY] = access_pwd
    app[BASE_URL_KEY] = (base_url or "").rstrip("/")
    app.router.add_post("/verify", handle_verify)
    app.router.add_post("/upload", handle_upload)
    app.router.add_get(DOWNLOAD_PATH, handle_download)
    return app


async def start_web_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info(f"Web server listening on http://{host}:{port}")
    return runner
