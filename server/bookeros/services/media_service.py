"""Media service: base64 uploads stored in the database."""

import base64
import binascii
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.media import Media
from ..models.user import User
from ..schemas.media import UploadMediaRequest

logger = logging.getLogger(__name__)

MAX_MEDIA_BYTES = 5 * 1024 * 1024


def decoded_size(content: str) -> int:
    """
    Size in bytes of base64 content, accepting an optional data-URL prefix.

    Raises:
        ValidationError: If the content is not valid base64
    """
    if content.startswith("data:") and "," in content:
        content = content.split(",", 1)[1]
    try:
        return len(base64.b64decode(content, validate=True))
    except (binascii.Error, ValueError):
        raise ValidationError(
            detail="Content is not valid base64",
            violations=[{"path": "content", "message": "invalid base64"}],
        )


class MediaService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upload(self, request: UploadMediaRequest, user: Optional[User] = None) -> Media:
        """
        Store an uploaded file.

        Raises:
            ValidationError: If the content is not base64 or is too large
        """
        size = decoded_size(request.content)
        if size > MAX_MEDIA_BYTES:
            raise ValidationError(
                detail=f"Files are limited to {MAX_MEDIA_BYTES // (1024 * 1024)} MB",
                violations=[{"path": "content", "message": "too large"}],
            )

        media = Media(
            name=request.name,
            mime_type=request.mime_type,
            content=request.content,
            size=size,
            uploaded_by=user.id if user else None,
        )
        self.db.add(media)
        await self.db.commit()
        await self.db.refresh(media)

        logger.info(
            "Media uploaded",
            extra={"media_id": str(media.id), "mime_type": media.mime_type, "size": size}
        )
        return media

    async def get_media_or_raise(self, media_id: UUID) -> Media:
        media = await self.db.get(Media, media_id)
        if media is None:
            raise NotFoundError(resource_type="media", resource_id=str(media_id))
        return media
