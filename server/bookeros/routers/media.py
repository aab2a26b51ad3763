"""Media upload router."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import require_capability
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.media import Media, MediaContent, UploadMediaRequest
from ..services.media_service import MediaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/media", tags=["media"])


def _media_url(media_id) -> str:
    return f"/api/media/{media_id}"


@router.post("", response_model=Media, status_code=201)
async def upload_media(
    request: UploadMediaRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_capability(Capability.UPLOAD_MEDIA)),
) -> JSONResponse:
    """Store a base64-encoded image or PDF."""
    media = await MediaService(db).upload(request, user)
    response_data = Media(
        id=media.id,
        name=media.name,
        mime_type=media.mime_type,
        size=media.size,
        created_at=media.created_at,
        url=_media_url(media.id),
    )
    return JSONResponse(status_code=201, content=response_data.model_dump(mode="json"))


@router.get("/{media_id}", response_model=MediaContent)
async def get_media(media_id: UUID, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    media = await MediaService(db).get_media_or_raise(media_id)
    response_data = MediaContent(
        id=media.id,
        name=media.name,
        mime_type=media.mime_type,
        size=media.size,
        created_at=media.created_at,
        url=_media_url(media.id),
        content=media.content,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
