"""
Unit tests for BlobStore uploads to the Files API.
"""

import asyncio
import base64
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from tutor.core.attachments import AttachmentReference, classify_media
from tutor.errors import UploadFailure
from tutor.tools.blob_store import BlobStore, RawUpload


PDF = classify_media("pdf", "notes.pdf")
PNG = classify_media("image", "board.png")


def encoded(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


@pytest.fixture
def staged_paths():
    return []


@pytest.fixture
def genai_client(staged_paths):
    client = MagicMock()

    async def upload(file, config):
        staged_paths.append(file)
        assert os.path.exists(file)
        return SimpleNamespace(uri=f"https://files/{config.display_name}")

    client.aio.files.upload = AsyncMock(side_effect=upload)
    return client


@pytest.mark.asyncio
async def test_upload_returns_reference_and_removes_staging_file(genai_client, staged_paths):
    store = BlobStore(genai_client)

    result = await store.upload(encoded("%PDF-1.4"), PDF, "notes.pdf")

    assert result == AttachmentReference(uri="https://files/notes.pdf", mime_type="application/pdf")
    assert len(staged_paths) == 1
    assert not os.path.exists(staged_paths[0])


@pytest.mark.asyncio
async def test_staging_file_removed_when_upload_fails(staged_paths):
    client = MagicMock()

    async def upload(file, config):
        staged_paths.append(file)
        raise RuntimeError("quota exceeded")

    client.aio.files.upload = AsyncMock(side_effect=upload)

    with pytest.raises(UploadFailure, match="quota exceeded"):
        await BlobStore(client).upload(encoded("img"), PNG, "board.png")

    assert not os.path.exists(staged_paths[0])


@pytest.mark.asyncio
async def test_invalid_base64_fails_without_calling_api(genai_client):
    with pytest.raises(UploadFailure):
        await BlobStore(genai_client).upload("@@not-base64@@", PNG, "board.png")

    genai_client.aio.files.upload.assert_not_called()


@pytest.mark.asyncio
async def test_upload_all_preserves_input_order(genai_client):
    store = BlobStore(genai_client)
    uploads = [
        RawUpload(display_name=f"f{i}.png", media=PNG, payload=encoded(str(i)))
        for i in range(3)
    ]

    results = await store.upload_all(uploads)

    assert [r.uri for r in results] == [
        "https://files/f0.png",
        "https://files/f1.png",
        "https://files/f2.png",
    ]


@pytest.mark.asyncio
async def test_upload_all_fails_as_a_whole(staged_paths):
    client = MagicMock()

    async def upload(file, config):
        staged_paths.append(file)
        if config.display_name == "second.png":
            raise RuntimeError("boom")
        return SimpleNamespace(uri=f"https://files/{config.display_name}")

    client.aio.files.upload = AsyncMock(side_effect=upload)
    uploads = [
        RawUpload(display_name=name, media=PNG, payload=encoded(name))
        for name in ("first.png", "second.png", "third.png")
    ]

    with pytest.raises(UploadFailure):
        await BlobStore(client).upload_all(uploads)

    assert all(not os.path.exists(p) for p in staged_paths)


@pytest.mark.asyncio
async def test_upload_all_with_no_files_skips_api(genai_client):
    assert await BlobStore(genai_client).upload_all([]) == []
    genai_client.aio.files.upload.assert_not_called()


@pytest.mark.asyncio
async def test_upload_all_follows_input_order_not_completion_order():
    client = MagicMock()
    delays = {"a.png": 0.05, "b.png": 0.0, "c.png": 0.02}
    finished = []

    async def upload(file, config):
        await asyncio.sleep(delays[config.display_name])
        finished.append(config.display_name)
        return SimpleNamespace(uri=f"https://files/{config.display_name}")

    client.aio.files.upload = AsyncMock(side_effect=upload)
    uploads = [
        RawUpload(display_name=name, media=PNG, payload=encoded(name)) for name in delays
    ]

    results = await BlobStore(client).upload_all(uploads)

    assert finished == ["b.png", "c.png", "a.png"]
    assert [r.uri for r in results] == [
        "https://files/a.png",
        "https://files/b.png",
        "https://files/c.png",
    ]


@pytest.mark.asyncio
async def test_staging_file_removed_when_upload_is_cancelled(staged_paths):
    client = MagicMock()

    async def upload(file, config):
        staged_paths.append(file)
        await asyncio.sleep(1)

    client.aio.files.upload = AsyncMock(side_effect=upload)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(BlobStore(client).upload(encoded("img"), PNG, "board.png"), 0.01)

    assert len(staged_paths) == 1
    assert not os.path.exists(staged_paths[0])
