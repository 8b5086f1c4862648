#!/usr/bin/env python3
"""
Discord Disk - Environment Compatibility Checker

Checks the interpreter, the installed distributions and the .env settings the
bot and its web front end need. Run it before starting the service.
"""

import os
import sys
from importlib import metadata

from dotenv import load_dotenv

from transfer.config import MIB, TransferConfig

# Distribution names as published on the index, not import names
REQUIRED_DISTRIBUTIONS = [
    ('discord.py', '2.3'),
    ('aiohttp', '3.9'),
    ('aiofiles', '23.1'),
    ('python-dotenv', '1.0'),
]

REQUIRED_SETTINGS = ('TOKEN', 'CHANNEL_ID', 'ACCESS_PWD')

# Largest attachment a bot can post without server boosts
DISCORD_ATTACHMENT_LIMIT = 25 * MIB


def check_python_version():
    """Check Python version compatibility"""
    print(f"🐍 Python Version: {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")

    if sys.version_info < (3, 10):
        print("❌ ERROR: Python 3.10+ is required")
        return False
    print("✅ Python version is compatible")
    return True


def parse_version(version):
    parts = []
    for piece in version.split('.')[:2]:
        digits = ''.join(c for c in piece if c.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


def check_distribution(name, min_version=None):
    try:
        version = metadata.version(name)
    except metadata.PackageNotFoundError:
        print(f"❌ {name} is not installed")
        return False

    if min_version and parse_version(version) < parse_version(min_version):
        print(f"❌ {name} {version} is too old (requires {min_version}+)")
        return False

    print(f"✅ {name} {version}")
    return True


def check_requirements(distributions=REQUIRED_DISTRIBUTIONS):
    print("\n📦 Checking Required Packages:")
    results = [check_distribution(name, min_version) for name, min_version in distributions]
    return all(results)


def check_settings(environ=None):
    """Validate the settings main.py reads at startup."""
    environ = os.environ if environ is None else environ
    print("\n⚙️  Checking Settings:")
    ok = True

    missing = [key for key in REQUIRED_SETTINGS if not environ.get(key)]
    if missing:
        print(f"❌ Missing required settings: {', '.join(missing)}")
        ok = False
    channel_id = environ.get('CHANNEL_ID')
    if channel_id and not channel_id.isdigit():
        print(f"❌ CHANNEL_ID must be numeric, got {channel_id!r}")
        ok = False

    try:
        config = TransferConfig(
            chunk_size=int(environ.get('CHUNK_SIZE_MB', '8')) * MIB,
            workers=int(environ.get('TRANSFER_WORKERS', '4')),
        )
    except ValueError as e:
        print(f"❌ Invalid transfer settings: {e}")
        return False

    if config.chunk_size > DISCORD_ATTACHMENT_LIMIT:
        print(f"⚠️  WARNING: CHUNK_SIZE_MB={config.chunk_size // MIB} is above Discord's attachment limit")
    if not environ.get('BASE_URL'):
        print("⚠️  WARNING: BASE_URL is not set, 'get' replies cannot build download links")
    if ok:
        print(f"✅ Chunk size {config.chunk_size // MIB} MB, {config.workers} workers")
    return ok


def main():
    """Main compatibility check"""
    print("🔍 Discord Disk - Compatibility Check")
    print("=" * 55)

    load_dotenv()
    python_ok = check_python_version()
    packages_ok = check_requirements()
    settings_ok = check_settings()

    print("\n" + "=" * 55)

    if python_ok and packages_ok and settings_ok:
        print("🎉 Environment is ready! You can start the bot.")
        return 0
    print("💥 Compatibility issues found. Please fix the errors above.")
    print("\nTo install/upgrade packages, run:")
    print("   pip install -e .")
    return 1


if __name__ == "__main__":
    sys.exit(main())
