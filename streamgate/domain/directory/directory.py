"""Liveness directory - thumbnails double as the liveness signal for channels."""

from datetime import datetime, timedelta, timezone
from typing import Protocol
from urllib.parse import quote

from loguru import logger

from streamgate.domain.channel.channel_domain import store_failure
from streamgate.domain.channel.channel_models import LivenessRow
from streamgate.domain.channel.registry import ChannelRegistry, RecordNotFound, StoreUnavailable
from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .directory_models import DirectoryEntry, LiveChannel

STALENESS_FLOOR = timedelta(minutes=1)


class LiveSource(Protocol):
    """Reports whether the media engine currently holds a publisher for a channel."""

    def is_live(self, name: str) -> bool: ...


def staleness_key(row: LivenessRow, now: datetime) -> tuple[timedelta, str]:
    """Everything updated within the last minute ties and falls back to name order."""
    return max(now - row.updated_at, STALENESS_FLOOR), row.name


def to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class LivenessDirectory:
    def __init__(self, registry: ChannelRegistry, live_source: LiveSource | None = None):
        self._registry = registry
        self._live_source = live_source

    async def _ordered_rows(self) -> list[LivenessRow]:
        try:
            rows, store_now = await self._registry.list_liveness()
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        now = store_now or datetime.now(timezone.utc)
        return sorted(rows, key=lambda row: staleness_key(row, now))

    async def list_live_channels(self) -> list[LiveChannel]:
        """Channels with a thumbnail, freshest first."""
        return [
            LiveChannel(name=row.name, last=to_millis(row.updated_at))
            for row in await self._ordered_rows()
        ]

    async def list_directory(self, thumb_base: str, live_base: str) -> list[DirectoryEntry]:
        thumb_base = thumb_base.rstrip("/")
        live_base = live_base.rstrip("/")
        entries = []
        for row in await self._ordered_rows():
            quoted = quote(row.name, safe="")
            entries.append(
                DirectoryEntry(
                    name=row.name,
                    live=self._live_source.is_live(row.name) if self._live_source else False,
                    last=to_millis(row.updated_at),
                    thumb=f"{thumb_base}/{quoted}.jpg",
                    live_url=f"{live_base}/{quoted}",
                )
            )
        return entries

    async def get_thumbnail(self, name: str) -> bytes:
        try:
            return await self._registry.get_thumbnail(name)
        except RecordNotFound as exc:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"no thumbnail for {name}",
                status_code=HttpStatusCode.NOT_FOUND,
            ) from exc
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc

    async def put_thumbnail(self, name: str, data: bytes) -> None:
        """Store the newest thumbnail; this also marks the channel as recently live."""
        try:
            await self._registry.put_thumbnail(name, data)
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        logger.debug("thumbnail updated for {} ({} bytes)", name, len(data))
