import discord
from discord.ext import commands
import asyncio
import os
from dotenv import load_dotenv
from log import logger, set_level
import signal
import argparse

from transfer import DiscordBlobStore, DownloadOrchestrator, TransferConfig, UploadOrchestrator
from webserver import create_app, start_web_server

bot = None


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Discord-backed file disk")
    parser.add_argument("--port", type=str, help="HTTP port")
    parser.add_argument("--token", type=str, help="Discord bot token")
    parser.add_argument("--access_pwd", type=str, help="Password for the upload page")
    parser.add_argument("--proxy", type=str, help="HTTP proxy URL")
    parser.add_argument("--channel_id", type=str, help="Storage channel ID")
    parser.add_argument("--base_url", type=str, help="Public base URL, e.g. https://yourdomain.com")
    parser.add_argument("--loglevel", type=str, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Set the logging level")
    return parser.parse_args(argv)


def override_env(args):
    # Command line wins over .env
    for key, value in (
        ("PORT", args.port),
        ("TOKEN", args.token),
        ("ACCESS_PWD", args.access_pwd),
        ("PROXY", args.proxy),
        ("CHANNEL_ID", args.channel_id),
        ("BASE_URL", args.base_url),
    ):
        if value:
            os.environ[key] = value


async def load_cogs(bot, directory="cogs"):
    tasks = []
    for filename in os.listdir(directory):
        if filename.endswith(".py") and not filename.startswith("_"):
            ext = f"{directory}.{filename[:-3]}"
            task = asyncio.create_task(bot.load_extension(ext))
            task.ext = ext
            tasks.append(task)
            logger.info(f"Prepared to load {ext}")

    for task in tasks:
        try:
            await task
            logger.info(f"Successfully loaded {task.ext}")
        except Exception as e:
            logger.error(f"Failed to load {task.ext}", exc_info=e)


class FileBot(commands.Bot):
    def __init__(self, store_channel_id, access_pwd, port=8080, proxy=None, base_url=None, guild_id=None, prefix="."):
        intents = discord.Intents.default()
        intents.message_content = True

        super().__init__(command_prefix=prefix.split(" "), intents=intents, proxy=proxy)
        self.logger = logger
        self.store_channel_id = store_channel_id
        self.access_pwd = access_pwd
        self.port = port
        self.proxy = proxy
        self.base_url = base_url
        self.guild_id = guild_id
        self.transfer_config = TransferConfig.from_env()
        self.store = None
        self.uploader = None
        self.downloader = None
        self.web_runner = None

    async def setup_hook(self):
        # Runs again on every reconnect attempt from main()
        if self.store is not None:
            return
        self.store = DiscordBlobStore(self, self.store_channel_id, proxy=self.proxy)
        self.uploader = UploadOrchestrator(self.store, self.transfer_config)
        self.downloader = DownloadOrchestrator(self.store, self.transfer_config)
        logger.info(
            f"Transfer config: chunk {self.transfer_config.chunk_size // (1024 * 1024)} MB, "
            f"{self.transfer_config.workers} workers"
        )
        await load_cogs(self)
        logger.info("Cogs loaded, bot is ready")

        app = create_app(self.uploader, self.downloader, self.access_pwd, self.base_url)
        self.web_runner = await start_web_server(app, "0.0.0.0", self.port)

    async def on_ready(self):
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info("------")
        await self.change_presence(status=discord.Status.idle)
        if self.guild_id:
            guild = discord.Object(id=self.guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info("Slash commands synced to guild.")

    async def close(self):
        if self.web_runner is not None:
            await self.web_runner.cleanup()
            self.web_runner = None
        if self.store is not None:
            await self.store.close()
        await super().close()


async def shutdown_bot():
    if bot:
        logger.info("Unloading all cogs")
        try:
            await asyncio.gather(*(bot.unload_extension(ext) for ext in list(bot.extensions)))
        except Exception as e:
            logger.error("Error unloading cogs during shutdown", exc_info=e)

        logger.info("Closing bot connection...")
        await bot.close()


def handle_exit(sig, frame):
    logger.info(f"Received signal {sig}, shutting down gracefully...")
    loop = asyncio.get_event_loop()
    loop.create_task(shutdown_bot())


async def main():
    global bot
    token = os.getenv("TOKEN")
    channel_id = os.getenv("CHANNEL_ID")
    access_pwd = os.getenv("ACCESS_PWD")
    if not token or not channel_id or not access_pwd:
        raise RuntimeError("Missing configuration: set TOKEN, CHANNEL_ID and ACCESS_PWD in .env or on the command line")
    try:
        store_channel_id = int(channel_id)
    except ValueError:
        raise RuntimeError(f"CHANNEL_ID must be numeric, got {channel_id!r}") from None
    guild_id = os.getenv("GUILD_ID")

    bot = FileBot(
        store_channel_id,
        access_pwd,
        port=int(os.getenv("PORT", "8080")),
        proxy=os.getenv("PROXY") or None,
        base_url=os.getenv("BASE_URL") or None,
        guild_id=int(guild_id) if guild_id else None,
        prefix=os.getenv("PREFIX", "."),
    )
    async with bot:
        max_retries = 5
        retry_count = 0
        backoff_time = 5

        while retry_count < max_retries:
            try:
                await bot.start(token)
                break
            except discord.errors.ConnectionClosed as e:
                retry_count += 1
                logger.error(f"Connection closed. Retrying ({retry_count}/{max_retries}) in {backoff_time}s: {e}")
                if retry_count < max_retries:
                    await asyncio.sleep(backoff_time)
                    backoff_time *= 2
                else:
                    logger.critical("Maximum retries reached. Shutting down.")
            except discord.errors.HTTPException as e:
                if hasattr(e, "retry_after"):
                    retry_after = getattr(e, "retry_after", 5)
                    logger.warning(f"Rate limited. Retrying in {retry_after}s")
                    await asyncio.sleep(retry_after)
                else:
                    logger.error(f"HTTP Error: {e}")
                    break


if __name__ == "__main__":
    load_dotenv()
    args = parse_args()
    override_env(args)
    if args.loglevel:
        set_level(args.loglevel)
    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)
    asyncio.run(main())
