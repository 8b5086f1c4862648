"""Blob store backed by message attachments in a Discord channel."""

import io
import logging
from typing import Optional

import aiohttp
import discord

log = logging.getLogger("DiscordDisk.store")


class BlobStore:
    """Opaque blob storage: ``store`` returns a handle that ``fetch`` accepts."""

    async def store(self, data: bytes, name: str, label: Optional[str] = None) -> str:
        raise NotImplementedError

    async def fetch(self, handle: str) -> bytes:
        raise NotImplementedError

    async def close(self):
        pass


class DiscordBlobStore(BlobStore):
    """Each blob is one message with a single attachment; the handle is the message id."""

    def __init__(self, bot, channel_id: int, proxy: Optional[str] = None):
        self.bot = bot
        self.channel_id = channel_id
        self.proxy = proxy
        self._channel = None
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_channel(self):
        if self._channel is None:
            channel = self.bot.get_channel(self.channel_id)
            if channel is None:
                channel = await self.bot.fetch_channel(self.channel_id)
            self._channel = channel
        return self._channel

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def store(self, data: bytes, name: str, label: Optional[str] = None) -> str:
        channel = await self._get_channel()
        file_obj = discord.File(io.BytesIO(data), filename=name)
        msg = await channel.send(label, file=file_obj)
        if not msg.attachments:
            raise RuntimeError(f"Message {msg.id} came back without an attachment")
        log.debug(f"Stored {name} ({len(data)} bytes) as message {msg.id}")
        return str(msg.id)

    async def fetch(self, handle: str) -> bytes:
        try:
            message_id = int(handle)
        except ValueError:
            raise ValueError(f"Not a message id: {handle!r}") from None
        channel = await self._get_channel()
        msg = await channel.fetch_message(message_id)
        if not msg.attachments:
            raise RuntimeError(f"Message {handle} has no attachment")
        att = msg.attachments[0]
        session = self._get_session()
        async with session.get(att.url, proxy=self.proxy) as resp:
            if resp.status != 200:
                raise RuntimeError(f"HTTP {resp.status} fetching {att.filename}")
            data = await resp.read()
        log.debug(f"Fetched message {handle} ({len(data)} bytes)")
        return data

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
