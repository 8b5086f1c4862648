"""Tests for the upload orchestrator."""

import io
import os

import pytest

from tests.fakes import MemoryBlobStore
from transfer import DownloadOrchestrator, TransferConfig, UploadOrchestrator
from transfer import manifest
from transfer.errors import InputError, StoreFailure
from transfer.reference import (
    DIRECT_LABEL,
    MANIFEST_LABEL,
    PIECE_LABEL,
    DirectReference,
    ManifestReference,
    make_piece_filename,
)

MIB = 1024 * 1024


@pytest.mark.asyncio
async def test_declared_small_file_is_stored_directly(uploader, memory_store):
    reference = await uploader.upload("notes.txt", io.BytesIO(b"hello"), declared_size=5)

    assert isinstance(reference, DirectReference)
    assert reference.filename == "notes.txt"
    blob = memory_store.blobs[reference.handle]
    assert blob.data == b"hello"
    assert blob.label == DIRECT_LABEL
    assert blob.name == "notes.txt"
    assert memory_store.with_label(MANIFEST_LABEL) == {}


@pytest.mark.asyncio
async def test_declared_size_equal_to_chunk_size_is_direct(uploader, memory_store, small_config):
    data = os.urandom(small_config.chunk_size)

    reference = await uploader.upload("exact.bin", io.BytesIO(data), declared_size=len(data))

    assert isinstance(reference, DirectReference)
    assert memory_store.blobs[reference.handle].data == data


@pytest.mark.asyncio
async def test_payload_larger_than_declared_size_is_rejected(uploader, memory_store, small_config):
    data = os.urandom(small_config.chunk_size + 10)

    with pytest.raises(InputError):
        await uploader.upload("liar.bin", io.BytesIO(data), declared_size=10)
    assert memory_store.store_calls == 0


@pytest.mark.asyncio
async def test_unknown_size_takes_chunked_path(uploader, memory_store):
    reference = await uploader.upload("small.txt", io.BytesIO(b"tiny"))

    assert isinstance(reference, ManifestReference)
    filename, handles = manifest.decode(memory_store.blobs[reference.handle].data)
    assert filename == "small.txt"
    assert len(handles) == 1
    assert memory_store.blobs[handles[0]].data == b"tiny"


@pytest.mark.asyncio
async def test_chunked_upload_writes_handles_in_split_order():
    # Piece 0 finishes storing last
    store = MemoryBlobStore(store_delay=lambda name: 0.02 if name.endswith("_0.chunk") else 0.0)
    config = TransferConfig(chunk_size=1024, workers=4)
    data = os.urandom(4 * 1024 + 100)

    reference = await UploadOrchestrator(store, config).upload("big.bin", io.BytesIO(data), len(data))

    filename, handles = manifest.decode(store.blobs[reference.handle].data)
    assert filename == "big.bin"
    assert len(handles) == 5
    assert [store.blobs[h].name for h in handles] == [make_piece_filename("big.bin", i) for i in range(5)]
    assert b"".join(store.blobs[h].data for h in handles) == data
    assert all(store.blobs[h].label == PIECE_LABEL for h in handles)
    assert store.blobs[reference.handle].label == MANIFEST_LABEL


@pytest.mark.asyncio
async def test_zero_byte_file_gets_one_empty_piece(uploader, downloader, memory_store):
    reference = await uploader.upload("empty.txt", io.BytesIO(b""), declared_size=0)

    assert isinstance(reference, ManifestReference)
    _, handles = manifest.decode(memory_store.blobs[reference.handle].data)
    assert len(handles) == 1
    download = await downloader.download(reference)
    assert await download.read() == b""


@pytest.mark.asyncio
async def test_failed_piece_aborts_upload_without_manifest():
    failing = make_piece_filename("five.bin", 2)
    store = MemoryBlobStore(fail_store=lambda name, label: name == failing)
    config = TransferConfig(chunk_size=1024, workers=4)
    data = os.urandom(5 * 1024)

    with pytest.raises(StoreFailure) as excinfo:
        await UploadOrchestrator(store, config).upload("five.bin", io.BytesIO(data), len(data))

    assert excinfo.value.index == 2
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert store.with_label(MANIFEST_LABEL) == {}
    assert store.in_flight == 0


@pytest.mark.asyncio
async def test_failed_manifest_store_is_reported():
    store = MemoryBlobStore(fail_store=lambda name, label: label == MANIFEST_LABEL)
    config = TransferConfig(chunk_size=1024, workers=2)

    with pytest.raises(StoreFailure) as excinfo:
        await UploadOrchestrator(store, config).upload("m.bin", io.BytesIO(os.urandom(3000)))

    assert excinfo.value.index is None
    assert "manifest" in str(excinfo.value)


@pytest.mark.asyncio
async def test_failed_direct_store_is_piece_zero():
    store = MemoryBlobStore(fail_store=lambda name, label: True)
    config = TransferConfig(chunk_size=1024, workers=2)

    with pytest.raises(StoreFailure) as excinfo:
        await UploadOrchestrator(store, config).upload("d.txt", io.BytesIO(b"abc"), 3)

    assert excinfo.value.index == 0


@pytest.mark.asyncio
async def test_store_concurrency_is_bounded():
    store = MemoryBlobStore(store_delay=lambda name: 0.01)
    config = TransferConfig(chunk_size=1024, workers=4)
    data = os.urandom(10 * 1024)

    await UploadOrchestrator(store, config).upload("ten.bin", io.BytesIO(data), len(data))

    # ten pieces plus the manifest
    assert store.store_calls == 11
    assert store.max_in_flight == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("filename", ["", "   ", "a\nb.txt"])
async def test_invalid_filenames_are_input_errors(uploader, filename):
    with pytest.raises(InputError):
        await uploader.upload(filename, io.BytesIO(b"x"), 1)


@pytest.mark.asyncio
async def test_negative_declared_size_is_input_error(uploader):
    with pytest.raises(InputError):
        await uploader.upload("a.txt", io.BytesIO(b"x"), -1)


@pytest.mark.asyncio
async def test_45_mib_file_with_20_mib_pieces():
    store = MemoryBlobStore()
    config = TransferConfig(chunk_size=20 * MIB, workers=4)
    data = os.urandom(45 * MIB)

    reference = await UploadOrchestrator(store, config).upload("disk.img", io.BytesIO(data), len(data))

    assert isinstance(reference, ManifestReference)
    _, handles = manifest.decode(store.blobs[reference.handle].data)
    assert [len(store.blobs[h].data) for h in handles] == [20 * MIB, 20 * MIB, 5 * MIB]
    assert len(store.blobs) == 4

    download = await DownloadOrchestrator(store, config).download(reference)
    assert await download.read() == data


@pytest.mark.asyncio
async def test_empty_payload_with_envelope_size_gets_one_empty_piece(uploader, memory_store):
    # Declared size covers a form envelope around a zero-byte file
    reference = await uploader.upload("empty.txt", io.BytesIO(b""), declared_size=300)

    assert isinstance(reference, ManifestReference)
    _, handles = manifest.decode(memory_store.blobs[reference.handle].data)
    assert [memory_store.blobs[h].data for h in handles] == [b""]
    assert memory_store.with_label(DIRECT_LABEL) == {}
