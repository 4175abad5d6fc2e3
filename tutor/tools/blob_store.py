from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from typing import List, Sequence, Union

from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict

from tutor.core.attachments import AttachmentReference, ClassifiedMedia, MediaKind, decode_base64
from tutor.errors import UploadFailure


logger = logging.getLogger("archie.blob_store")


class RawUpload(BaseModel):
    """One file from the request, still base64 encoded. Never persisted."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    media: ClassifiedMedia
    payload: Union[str, bytes]


def _suffix_for(media: ClassifiedMedia) -> str:
    if media.kind is MediaKind.PDF:
        return ".pdf"
    return ".jpg" if media.mime_type == "image/jpeg" else ".png"


def _staging_path(suffix: str) -> str:
    return os.path.join(tempfile.gettempdir(), f"archie-{uuid.uuid4().hex}{suffix}")


def _stage(path: str, raw: bytes) -> None:
    # "xb" so a path collision fails instead of clobbering another upload.
    with open(path, "xb") as handle:
        handle.write(raw)


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove staged upload %s: %s", path, exc)


class BlobStore:
    """Uploads files to the Gemini Files API and hands back references to them."""

    def __init__(self, client: genai.Client) -> None:
        self._client = client

    async def upload(
        self,
        payload: Union[str, bytes],
        media: ClassifiedMedia,
        display_name: str,
    ) -> AttachmentReference:
        try:
            raw = decode_base64(payload) if isinstance(payload, str) else bytes(payload)
        except ValueError as exc:
            raise UploadFailure(f"Could not decode file '{display_name}': {exc}") from exc

        name = display_name or f"upload-{uuid.uuid4().hex[:8]}{_suffix_for(media)}"
        path = _staging_path(_suffix_for(media))
        try:
            # Synchronous so the write always completes before the finally below.
            _stage(path, raw)
            logger.info(
                "Uploading %s (%s, %s bytes)", name, media.mime_type, len(raw)
            )
            uploaded = await self._client.aio.files.upload(
                file=path,
                config=types.UploadFileConfig(mime_type=media.mime_type, display_name=name),
            )
        except Exception as exc:
            logger.error("Upload failed for %s: %s", name, exc)
            raise UploadFailure(f"Upload failed for '{name}': {exc}") from exc
        finally:
            _unlink_quietly(path)

        uri = getattr(uploaded, "uri", None)
        if not uri:
            raise UploadFailure(f"Upload for '{name}' returned no file URI")
        return AttachmentReference(uri=uri, mime_type=media.mime_type)

    async def upload_all(self, uploads: Sequence[RawUpload]) -> List[AttachmentReference]:
        """Upload every file concurrently. Results follow input order; one failure fails all."""
        if not uploads:
            return []
        logger.info("Uploading %s new files", len(uploads))
        results = await asyncio.gather(
            *(self.upload(u.payload, u.media, u.display_name) for u in uploads)
        )
        return list(results)
