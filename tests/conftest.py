"""Shared pytest fixtures for all tests."""

import os

os.environ.setdefault("LOG_FILE", "")

import pytest

from tests.fakes import MemoryBlobStore
from transfer import DownloadOrchestrator, TransferConfig, UploadOrchestrator


@pytest.fixture
def memory_store():
    """Empty in-memory blob store."""
    return MemoryBlobStore()


@pytest.fixture
def small_config():
    """1 KiB pieces, four workers."""
    return TransferConfig(chunk_size=1024, workers=4)


@pytest.fixture
def uploader(memory_store, small_config):
    return UploadOrchestrator(memory_store, small_config)


@pytest.fixture
def downloader(memory_store, small_config):
    return DownloadOrchestrator(memory_store, small_config)
