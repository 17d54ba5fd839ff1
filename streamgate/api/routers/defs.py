from fastapi import APIRouter, Depends

from streamgate.api.dependency import CurrentOwner, get_channel_service
from streamgate.api.schemas.base import ApiOut
from streamgate.api.schemas.defs import ChannelDefOut, CreateChannelIn, UpdateAnnounceIn
from streamgate.domain.channel.channel_domain import ChannelService

router = APIRouter(prefix="/api", tags=["Channels"])


@router.get("/defs")
async def list_defs(
    owner: CurrentOwner,
    service: ChannelService = Depends(get_channel_service),
) -> ApiOut[list[ChannelDefOut]]:
    """List the signed-in owner's channels, secrets included."""
    channels = await service.list_channels(owner.id)
    return ApiOut[list[ChannelDefOut]](
        results=[ChannelDefOut(**channel.model_dump()) for channel in channels]
    )


@router.post("/defs")
async def create_def(
    body: CreateChannelIn,
    owner: CurrentOwner,
    service: ChannelService = Depends(get_channel_service),
) -> ApiOut[ChannelDefOut]:
    channel = await service.create_channel(owner.id, body.name)
    return ApiOut[ChannelDefOut](results=ChannelDefOut(**channel.model_dump()))


@router.put("/defs/{name}")
async def update_def(
    name: str,
    body: UpdateAnnounceIn,
    owner: CurrentOwner,
    service: ChannelService = Depends(get_channel_service),
) -> ApiOut[str]:
    await service.set_announce(owner.id, name, body.announce)
    return ApiOut[str](results="OK")


@router.delete("/defs/{name}")
async def delete_def(
    name: str,
    owner: CurrentOwner,
    service: ChannelService = Depends(get_channel_service),
) -> ApiOut[str]:
    await service.delete_channel(owner.id, name)
    return ApiOut[str](results="OK")


@router.put("/user/announce")
async def update_owner_announce(
    body: UpdateAnnounceIn,
    owner: CurrentOwner,
    service: ChannelService = Depends(get_channel_service),
) -> ApiOut[str]:
    """Owner-wide announce switch; combined with each channel's own flag at ingest time."""
    await service.set_owner_announce(owner.id, body.announce)
    return ApiOut[str](results="OK")
