import discord
from discord.ext import commands
from discord import app_commands
import os
import aiofiles
import logging
import time
from pathlib import Path
from typing import Optional, Tuple

from transfer.errors import InputError, TransferError
from transfer.reference import download_url, parse_reference, reference_for_label

log = logging.getLogger("DiscordDisk.cog")

GET_COMMANDS = ("get", "/get")


class DiskCog(commands.Cog):
    def __init__(self, bot):
        self.bot = bot
        self.download_dir = os.getenv("DOWNLOAD_DIR", "downloads")

    async def cog_load(self):
        if not os.path.exists(self.download_dir):
            os.makedirs(self.download_dir)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def _validate_path_input(self, file_path: str) -> Tuple[bool, str, Optional[Path]]:
        if not file_path or not file_path.strip():
            return False, "File path cannot be empty", None
        path_str = file_path.strip()
        dangerous = ['..', '~/', '/etc/', '/proc/', '/sys/', '/dev/', 'C:\\Windows', 'C:\\System32']
        for pat in dangerous:
            if pat in path_str:
                return False, f"Potentially dangerous path pattern detected: {pat}", None
        try:
            resolved = Path(path_str).resolve()
        except (OSError, RuntimeError) as e:
            return False, f"Invalid path format: {e}", None
        if not resolved.exists():
            return False, f"Path does not exist: {resolved}", None
        if not os.access(resolved, os.R_OK):
            return False, f"No read permission for path: {resolved}", None
        if not resolved.is_file():
            return False, f"Not a regular file: {resolved}", None
        return True, "", resolved

    def _link_for(self, reference) -> Optional[str]:
        if not self.bot.base_url:
            return None
        return download_url(self.bot.base_url, reference)

    def format_transfer_speed(self, start_time, bytes_transferred):
        elapsed = time.time() - start_time
        speed_mbps = (bytes_transferred / (1024 * 1024)) / elapsed if elapsed > 0 else 0.0
        if speed_mbps < 0.1:
            return f"{speed_mbps * 1024:.1f} KB/s"
        elif speed_mbps < 1.0:
            return f"{speed_mbps:.2f} MB/s"
        return f"{speed_mbps:.1f} MB/s"

    # ------------------------------------------------------------------
    # "get" reply: hand out a download link for a stored message
    # ------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.reference is None:
            return
        if message.channel.id != self.bot.store_channel_id:
            return
        if message.content.strip().lower() not in GET_COMMANDS:
            return

        replied = message.reference.resolved
        if not isinstance(replied, discord.Message):
            replied = await message.channel.fetch_message(message.reference.message_id)
        if not replied.attachments:
            await message.reply("❌ That message has no attachment.")
            return

        attachment = replied.attachments[0]
        reference = reference_for_label(replied.content, str(replied.id), attachment.filename)
        if reference is None:
            await message.reply("⚠️ That is a piece of a chunked file. Reply to its manifest message instead.")
            return
        if not self.bot.base_url:
            await message.reply("⚠️ BASE_URL is not configured, cannot build a download link.")
            return

        await message.reply(f"🔗 File [{attachment.filename}] download link:\n{self._link_for(reference)}")

    # ------------------------------------------------------------------
    # Slash Command: Upload
    # ------------------------------------------------------------------
    @app_commands.command(name="upload", description="Uploads a local file into the storage channel.")
    @app_commands.describe(file_path="The full path to the file to upload.")
    async def upload_file(self, interaction: discord.Interaction, file_path: str):
        path_valid, path_error, absolute_path = self._validate_path_input(file_path)
        if not path_valid:
            await interaction.response.send_message(f"❌ **Path Error:** {path_error}", ephemeral=True)
            return
        await interaction.response.send_message(f"✅ **Validation complete.** Uploading `{absolute_path.name}`...", ephemeral=True)

        size = absolute_path.stat().st_size
        start_time = time.time()
        try:
            async with aiofiles.open(absolute_path, "rb") as f:
                reference = await self.bot.uploader.upload(absolute_path.name, f, size)
        except Exception as e:
            log.error(f"Upload of {absolute_path} failed: {e}", exc_info=not isinstance(e, TransferError))
            await interaction.followup.send(f"💥 **Upload Error:** {e}", ephemeral=True)
            return

        summary = (
            f"🎉 **Upload Complete!** `{absolute_path.name}`\n"
            f"📊 Size: {size / (1024 * 1024):.2f} MB\n"
            f"⚡ Speed: {self.format_transfer_speed(start_time, size)}\n"
            f"🆔 File id: `{reference.file_id}`"
        )
        link = self._link_for(reference)
        if link:
            summary += f"\n🔗 {link}"
        await interaction.followup.send(summary, ephemeral=True)

    # ------------------------------------------------------------------
    # Slash Command: Download
    # ------------------------------------------------------------------
    @app_commands.command(name="download", description="Rebuilds a stored file into the local downloads folder.")
    @app_commands.describe(file_id="The file id returned by an upload.")
    @app_commands.describe(filename="Filename, required for direct (d.) file ids.")
    async def download_file(self, interaction: discord.Interaction, file_id: str, filename: Optional[str] = None):
        await interaction.response.defer(ephemeral=True)
        start_time = time.time()
        partial_path = None
        try:
            reference = parse_reference(file_id, filename)
            download = await self.bot.downloader.download(reference)
            name = Path(download.filename).name
            if name in ("", ".", ".."):
                raise InputError(f"Stored filename is not usable locally: {download.filename!r}")
            out_path = Path(self.download_dir) / name
            partial_path = out_path.with_suffix(out_path.suffix + '.partial')
            written = 0
            async with aiofiles.open(partial_path, "wb") as fw:
                async for data in download.iter_bytes():
                    await fw.write(data)
                    written += len(data)
            partial_path.replace(out_path)
        except Exception as e:
            log.error(f"Download of {file_id} failed: {e}", exc_info=not isinstance(e, TransferError))
            if partial_path is not None:
                partial_path.unlink(missing_ok=True)
            await interaction.followup.send(f"💥 **Download Error:** {e}", ephemeral=True)
            return

        await interaction.followup.send(
            "🎉 **Download Complete!**\n"
            f"📁 Saved to: `{out_path}`\n"
            f"📦 Bytes: {written / (1024 * 1024):.2f} MB\n"
            f"⚡ Speed: {self.format_transfer_speed(start_time, written)}",
            ephemeral=True
        )


async def setup(bot):
    await bot.add_cog(DiskCog(bot))
