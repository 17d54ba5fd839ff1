"""Channel domain service - owner-facing management of channel definitions."""

from loguru import logger

from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .channel_models import ChannelDef
from .registry import ChannelRegistry, RecordConflict, RecordNotFound, StoreUnavailable


def store_failure(exc: StoreUnavailable) -> AppError:
    """Map a store outage to the generic client-facing failure."""
    return AppError(
        errcode=AppErrorCode.E_STORE_FAILURE,
        errmesg="internal error",
        status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
    )


class ChannelService:
    """Channel definitions owned by a signed-in user."""

    def __init__(self, registry: ChannelRegistry, rtmp_base: str):
        self._registry = registry
        self._rtmp_base = rtmp_base

    async def list_channels(self, owner_id: str) -> list[ChannelDef]:
        """Return the owner's channels, secrets and ingest URLs included."""
        try:
            identities = await self._registry.get_channels_by_owner(owner_id)
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        return [ChannelDef.from_identity(identity, self._rtmp_base) for identity in identities]

    async def create_channel(self, owner_id: str, name: str) -> ChannelDef:
        """Create a channel with a freshly generated secret.

        Raises AppError(E_CONFLICT) when the name is taken by any owner.
        """
        try:
            identity = await self._registry.create_channel(owner_id, name)
        except RecordConflict as exc:
            logger.info("channel name {} already in use, owner {}", name, owner_id)
            raise AppError(
                errcode=AppErrorCode.E_CONFLICT,
                errmesg="channel name already in use",
                status_code=HttpStatusCode.CONFLICT,
            ) from exc
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        return ChannelDef.from_identity(identity, self._rtmp_base)

    async def set_announce(self, owner_id: str, name: str, announce: bool) -> None:
        try:
            await self._registry.set_announce(owner_id, name, announce)
        except RecordNotFound as exc:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"channel not found: {name}",
                status_code=HttpStatusCode.NOT_FOUND,
            ) from exc
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc

    async def delete_channel(self, owner_id: str, name: str) -> None:
        try:
            await self._registry.delete_channel(owner_id, name)
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        logger.info("deleted channel {} for owner {}", name, owner_id)

    async def set_owner_announce(self, owner_id: str, announce: bool) -> None:
        try:
            await self._registry.set_owner_announce(owner_id, announce)
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
