"""Hooks called by the media engine when a publisher connects or a thumbnail is rendered.

All routes require the shared internal key in the X-API-Key header.
"""

from fastapi import APIRouter, Depends, Request

from streamgate.api.dependency import get_authenticator, get_directory
from streamgate.api.schemas.base import ApiOut
from streamgate.api.schemas.ingest import ChannelAuthorizationOut, FtlAuthIn, RtmpAuthIn
from streamgate.domain.directory.directory import LivenessDirectory
from streamgate.domain.ingest.authenticator import IngestAuthenticator
from streamgate.shared.api.utils import verify_api_key

router = APIRouter(prefix="/ingest", tags=["Ingest"], dependencies=[Depends(verify_api_key)])


@router.post("/rtmp")
async def authenticate_rtmp(
    body: RtmpAuthIn,
    authenticator: IngestAuthenticator = Depends(get_authenticator),
) -> ApiOut[ChannelAuthorizationOut]:
    if body.url:
        auth = await authenticator.authenticate_rtmp_url(body.url)
    else:
        auth = await authenticator.authenticate_rtmp(body.name or "", body.key)
    return ApiOut[ChannelAuthorizationOut](results=ChannelAuthorizationOut(**auth.model_dump()))


@router.post("/ftl")
async def authenticate_ftl(
    body: FtlAuthIn,
    authenticator: IngestAuthenticator = Depends(get_authenticator),
) -> ApiOut[ChannelAuthorizationOut]:
    auth = await authenticator.authenticate_ftl(body.channel_id, body.nonce, body.digest)
    return ApiOut[ChannelAuthorizationOut](results=ChannelAuthorizationOut(**auth.model_dump()))


@router.put("/thumbs/{name}")
async def put_thumbnail(
    name: str,
    request: Request,
    directory: LivenessDirectory = Depends(get_directory),
) -> ApiOut[str]:
    await directory.put_thumbnail(name, await request.body())
    return ApiOut[str](results="OK")
