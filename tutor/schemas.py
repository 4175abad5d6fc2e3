from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FilePayload(BaseModel):
    name: str = Field("", description="Original file name, used as the upload display name")
    type: Optional[str] = Field(None, description="'pdf', 'image' or a MIME type")
    data: str = Field("", description="Base64 encoded file contents")


class ActionRequest(BaseModel):
    """Body of ``POST /chatWithTutor``. Which fields matter depends on ``action``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: Optional[str] = None
    message: Optional[str] = None
    history: Optional[List[Any]] = Field(
        default_factory=list,
        description="Recent turns as {role, text}, oldest first (client-managed)",
    )
    files: Optional[List[FilePayload]] = Field(default_factory=list)
    active_file_uris: Optional[List[Any]] = Field(
        default_factory=list,
        alias="activeFileUris",
        description="Attachment references returned by the previous chat turn",
    )
    image: Optional[str] = None
    topic: Optional[str] = None
