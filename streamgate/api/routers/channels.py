"""Anonymous viewer endpoints: the live directory and thumbnails."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from streamgate.api.dependency import get_directory, get_settings
from streamgate.app_config import AppEnvironConfig
from streamgate.domain.directory.directory import LivenessDirectory
from streamgate.domain.directory.directory_models import DirectoryEntry

router = APIRouter(tags=["Directory"])


@router.get("/channels.json")
async def list_channels(
    directory: LivenessDirectory = Depends(get_directory),
    settings: AppEnvironConfig = Depends(get_settings),
) -> list[DirectoryEntry]:
    return await directory.list_directory(settings.THUMB_BASE_URL, settings.LIVE_BASE_URL)


@router.get("/thumbs/{name}.jpg")
async def get_thumbnail(name: str, directory: LivenessDirectory = Depends(get_directory)) -> Response:
    data = await directory.get_thumbnail(name)
    return Response(content=data, media_type="image/jpeg")
