"""Chunked transfer engine (no Discord UI code)."""

from .config import TransferConfig
from .downloader import Download, DownloadOrchestrator
from .errors import FetchFailure, FormatError, InputError, StoreFailure, TransferError
from .reference import DirectReference, ManifestReference, download_url, parse_reference
from .store import BlobStore, DiscordBlobStore
from .uploader import UploadOrchestrator

__all__ = [
    "TransferConfig",
    "Download",
    "DownloadOrchestrator",
    "UploadOrchestrator",
    "BlobStore",
    "DiscordBlobStore",
    "DirectReference",
    "ManifestReference",
    "download_url",
    "parse_reference",
    "TransferError",
    "InputError",
    "StoreFailure",
    "FetchFailure",
    "FormatError",
]
