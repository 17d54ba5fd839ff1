"""Channel registry backed by Postgres.

All reads and writes are single statements (or one short transaction for
channel creation), so row-level atomicity of the store is the only
concurrency control needed.
"""

import asyncio
import secrets
from contextlib import asynccontextmanager
from datetime import datetime

import asyncpg
from loguru import logger

from streamgate.shared.storage.postgres import PostgresManager

from .channel_models import ChannelAuthorization, ChannelIdentity, LivenessRow, LookupColumn

SECRET_BYTES = 24

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    user_id text PRIMARY KEY,
    announce boolean NOT NULL DEFAULT true
);
CREATE TABLE IF NOT EXISTS channel_defs (
    user_id text NOT NULL,
    name text PRIMARY KEY,
    key text NOT NULL,
    ftl_id text UNIQUE,
    announce boolean NOT NULL DEFAULT true
);
CREATE INDEX IF NOT EXISTS channel_defs_user_id ON channel_defs (user_id);
CREATE TABLE IF NOT EXISTS thumbs (
    name text PRIMARY KEY,
    thumb bytea NOT NULL,
    updated timestamptz NOT NULL DEFAULT now()
);
"""


class RegistryError(Exception):
    """Base class for registry failures."""


class RecordNotFound(RegistryError):
    """The targeted row does not exist."""


class RecordConflict(RegistryError):
    """A unique constraint rejected the write."""


class StoreUnavailable(RegistryError):
    """The store failed or timed out; the caller may retry."""


def generate_secret() -> str:
    return secrets.token_bytes(SECRET_BYTES).hex()


class ChannelRegistry:
    """Typed access to channel identities, owner preferences and thumbnails."""

    def __init__(self, pg: PostgresManager):
        self._pg = pg

    @asynccontextmanager
    async def _session(self, operation: str):
        try:
            async with self._pg.session() as client:
                yield client
        except RegistryError:
            raise
        except asyncpg.UniqueViolationError as exc:
            raise RecordConflict(operation) from exc
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            logger.error("registry {} failed: {}: {}", operation, type(exc).__name__, exc)
            raise StoreUnavailable(operation) from exc

    async def init_schema(self) -> None:
        async with self._session("init_schema") as client:
            await client.execute(SCHEMA_SQL)

    async def get_channels_by_owner(self, owner_id: str) -> list[ChannelIdentity]:
        async with self._session("get_channels_by_owner") as client:
            rows = await client.fetch(
                "SELECT user_id, name, key, ftl_id, announce FROM channel_defs "
                "WHERE user_id = $1 ORDER BY name",
                owner_id,
            )
        return [_identity_from_row(row) for row in rows]

    async def create_channel(self, owner_id: str, name: str) -> ChannelIdentity:
        """Insert a channel with a fresh secret.

        The owner preference row is created on first use so the joined
        announce flag resolves for the new channel.
        """
        secret = generate_secret()
        async with self._session("create_channel") as client:
            async with client.conn.transaction():
                await client.execute(
                    "INSERT INTO users (user_id) VALUES ($1) ON CONFLICT (user_id) DO NOTHING",
                    owner_id,
                )
                await client.execute(
                    "INSERT INTO channel_defs (user_id, name, key, announce) VALUES ($1, $2, $3, true)",
                    owner_id,
                    name,
                    secret,
                )
        logger.info("created channel {} for owner {}", name, owner_id)
        return ChannelIdentity(owner_id=owner_id, name=name, secret=secret, announce=True)

    async def set_announce(self, owner_id: str, name: str, announce: bool) -> None:
        async with self._session("set_announce") as client:
            status = await client.execute(
                "UPDATE channel_defs SET announce = $1 WHERE user_id = $2 AND name = $3",
                announce,
                owner_id,
                name,
            )
        if _rows_affected(status) == 0:
            raise RecordNotFound(name)

    async def set_owner_announce(self, owner_id: str, announce: bool) -> None:
        async with self._session("set_owner_announce") as client:
            await client.execute(
                "INSERT INTO users (user_id, announce) VALUES ($1, $2) "
                "ON CONFLICT (user_id) DO UPDATE SET announce = EXCLUDED.announce",
                owner_id,
                announce,
            )

    async def delete_channel(self, owner_id: str, name: str) -> None:
        async with self._session("delete_channel") as client:
            await client.execute(
                "DELETE FROM channel_defs WHERE user_id = $1 AND name = $2",
                owner_id,
                name,
            )

    async def find_channel_by_column(
        self, column: LookupColumn, value: str
    ) -> tuple[ChannelAuthorization, str]:
        """Resolve a channel and its effective announce flag in one read.

        Returns the authorization record and the stored secret.
        """
        column = LookupColumn(column)
        async with self._session("find_channel") as client:
            row = await client.fetchrow(
                "SELECT channel_defs.user_id, channel_defs.name, channel_defs.key, "
                "COALESCE(channel_defs.announce AND users.announce, false) AS effective_announce "
                "FROM channel_defs LEFT JOIN users USING (user_id) "
                f"WHERE channel_defs.{column.value} = $1",
                value,
            )
        if row is None:
            raise RecordNotFound(value)
        auth = ChannelAuthorization(
            owner_id=row["user_id"],
            name=row["name"],
            effective_announce=bool(row["effective_announce"]),
        )
        return auth, row["key"]

    async def get_thumbnail(self, name: str) -> bytes:
        async with self._session("get_thumbnail") as client:
            data = await client.fetchval("SELECT thumb FROM thumbs WHERE name = $1", name)
        if data is None:
            raise RecordNotFound(name)
        return bytes(data)

    async def put_thumbnail(self, name: str, data: bytes) -> None:
        async with self._session("put_thumbnail") as client:
            await client.execute(
                "INSERT INTO thumbs (name, thumb) VALUES ($1, $2) "
                "ON CONFLICT (name) DO UPDATE SET thumb = EXCLUDED.thumb, updated = now()",
                name,
                data,
            )

    async def list_liveness(self) -> tuple[list[LivenessRow], datetime | None]:
        """Return liveness rows of announced channels by name, plus the store clock at read time.

        A thumbnail only counts while its channel exists and both the channel
        and its owner announce. A missing owner row means no announce.
        """
        async with self._session("list_liveness") as client:
            rows = await client.fetch(
                "SELECT thumbs.name, thumbs.updated, now() AS now FROM thumbs "
                "JOIN channel_defs USING (name) LEFT JOIN users USING (user_id) "
                "WHERE COALESCE(channel_defs.announce AND users.announce, false) "
                "ORDER BY thumbs.name"
            )
            store_now = rows[0]["now"] if rows else None
        return [LivenessRow(name=row["name"], updated_at=row["updated"]) for row in rows], store_now


def _identity_from_row(row) -> ChannelIdentity:
    return ChannelIdentity(
        owner_id=row["user_id"],
        name=row["name"],
        secret=row["key"],
        ftl_id=row["ftl_id"],
        announce=row["announce"],
    )


def _rows_affected(status: str) -> int:
    """Parse the affected row count from an asyncpg command tag such as 'UPDATE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
