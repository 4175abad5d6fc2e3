from __future__ import annotations

"""Attachment references, media classification and per-turn reconciliation.

The server keeps no attachment state between requests. The client sends back
the references it received on the previous turn (``activeFileUris``) and we
merge them with whatever was uploaded for the current turn.
"""

import base64
import binascii
import logging
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from tutor.errors import ValidationFailure


logger = logging.getLogger("archie.attachments")


class MediaKind(str, Enum):
    IMAGE = "image"
    PDF = "pdf"


PDF_MIME = "application/pdf"
PNG_MIME = "image/png"
JPEG_MIME = "image/jpeg"

SUPPORTED_MIME_TYPES = {
    PDF_MIME: MediaKind.PDF,
    PNG_MIME: MediaKind.IMAGE,
    JPEG_MIME: MediaKind.IMAGE,
}

# Short media-type tags some client builds stored instead of a MIME type.
_KIND_TAG_TO_MIME = {
    MediaKind.IMAGE.value: PNG_MIME,
    MediaKind.PDF.value: PDF_MIME,
}

_MEDIA_TYPE_KEYS = ("mimeType", "mime_type", "mediaType")


class AttachmentReference(BaseModel):
    """A file already accepted by the Files API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uri: str
    mime_type: str = Field(..., alias="mimeType")

    @property
    def kind(self) -> MediaKind:
        return SUPPORTED_MIME_TYPES.get(self.mime_type, MediaKind.IMAGE)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ClassifiedMedia(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: MediaKind
    mime_type: str


def classify_media(declared_type: Optional[str], filename: Optional[str]) -> ClassifiedMedia:
    """Decide the media type of an upload from its declared type, then its name.

    This is the only place upload MIME types are derived.
    """
    declared = (declared_type or "").strip().lower()
    name = (filename or "").strip().lower()

    if declared in (MediaKind.PDF.value, PDF_MIME) or name.endswith(".pdf"):
        media = ClassifiedMedia(kind=MediaKind.PDF, mime_type=PDF_MIME)
    elif declared in (PNG_MIME, JPEG_MIME):
        media = ClassifiedMedia(kind=MediaKind.IMAGE, mime_type=declared)
    elif name.endswith((".jpg", ".jpeg")):
        media = ClassifiedMedia(kind=MediaKind.IMAGE, mime_type=JPEG_MIME)
    else:
        media = ClassifiedMedia(kind=MediaKind.IMAGE, mime_type=PNG_MIME)

    logger.debug(
        "Classified upload name=%r declared=%r as %s (%s)",
        filename,
        declared_type,
        media.kind.value,
        media.mime_type,
    )
    return media


def decode_base64(data: str) -> bytes:
    """Decode a base64 payload, tolerating a ``data:...;base64,`` prefix and line breaks.

    Raises ``ValueError`` when the payload is not valid base64.
    """
    text = data.strip()
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1]
    text = "".join(text.split())
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"payload is not valid base64: {exc}") from exc


def inline_image(data: str) -> Tuple[str, str]:
    """Return ``(mime_type, clean_base64)`` for an image sent inline rather than uploaded.

    JPEG is recognised by its magic bytes; everything else is sent as PNG.
    """
    try:
        raw = decode_base64(data)
    except ValueError as exc:
        raise ValidationFailure("Image is not valid base64") from exc
    if not raw:
        raise ValidationFailure("No image provided")
    mime_type = JPEG_MIME if raw[:3] == b"\xff\xd8\xff" else PNG_MIME
    return mime_type, base64.b64encode(raw).decode("ascii")


def _media_type_of(entry: Mapping[str, Any]) -> Optional[str]:
    for key in _MEDIA_TYPE_KEYS:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            value = value.strip()
            return _KIND_TAG_TO_MIME.get(value.lower(), value)
    return None


def coerce_reference(entry: Any) -> Optional[AttachmentReference]:
    """Return a reference for a structurally complete entry, otherwise ``None``."""
    if isinstance(entry, AttachmentReference):
        return entry
    if not isinstance(entry, Mapping):
        return None
    uri = entry.get("uri")
    if not isinstance(uri, str) or not uri.strip():
        return None
    mime_type = _media_type_of(entry)
    if mime_type is None:
        return None
    return AttachmentReference(uri=uri, mime_type=mime_type)


def filter_prior(prior_active: Optional[Iterable[Any]]) -> List[AttachmentReference]:
    kept: List[AttachmentReference] = []
    dropped = 0
    for entry in prior_active or []:
        ref = coerce_reference(entry)
        if ref is None:
            dropped += 1
            continue
        kept.append(ref)
    if dropped:
        logger.debug("Dropped %s malformed prior attachment entries", dropped)
    return kept


def reconcile(
    prior_active: Optional[Iterable[Any]],
    newly_uploaded: Sequence[AttachmentReference],
) -> List[AttachmentReference]:
    """Merge the client's prior attachments with this turn's uploads.

    Prior entries come first, then new ones, each group in its original order.
    Nothing is de-duplicated or capped.
    """
    return filter_prior(prior_active) + list(newly_uploaded)
