"""Media upload schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class UploadMediaRequest(BaseModel):
    """Base64-encoded file upload."""

    name: str = Field(..., min_length=1, max_length=255, description="Original file name")
    mime_type: str = Field(
        ...,
        pattern=r"^(image/(png|jpeg|webp|gif)|application/pdf)$",
        description="MIME type"
    )
    content: str = Field(..., min_length=1, description="Base64-encoded file content")


class Media(BaseModel):
    id: UUID
    name: str
    mime_type: str
    size: int = Field(..., description="Decoded size in bytes")
    created_at: datetime
    url: str = Field(..., description="Where the content can be fetched")


class MediaContent(Media):
    content: str = Field(..., description="Base64-encoded file content")
