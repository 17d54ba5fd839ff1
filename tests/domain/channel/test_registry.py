"""Tests for ChannelRegistry against a fake asyncpg session."""

import asyncio
from datetime import datetime, timezone

import asyncpg
import pytest

from streamgate.domain.channel.channel_models import LookupColumn
from streamgate.domain.channel.registry import (
    SCHEMA_SQL,
    ChannelRegistry,
    RecordConflict,
    RecordNotFound,
    StoreUnavailable,
)


@pytest.fixture
def registry(fake_pg) -> ChannelRegistry:
    return ChannelRegistry(fake_pg)  # type: ignore[arg-type]


class TestCreateChannel:
    async def test_create_returns_fresh_secret(self, registry: ChannelRegistry, fake_pg):
        """Should generate a 48 hex char secret and default announce to true."""
        identity = await registry.create_channel("owner-1", "alpha")

        assert identity.owner_id == "owner-1"
        assert identity.name == "alpha"
        assert identity.announce is True
        assert len(identity.secret) == 48
        int(identity.secret, 16)

        # owner preference row first, then the channel, in one transaction
        assert fake_pg.client.execute.await_count == 2
        assert fake_pg.client.conn.tx.entered == 1
        insert_args = fake_pg.client.execute.await_args_list[1].args
        assert insert_args[1:] == ("owner-1", "alpha", identity.secret)

    async def test_secrets_differ_between_channels(self, registry: ChannelRegistry):
        first = await registry.create_channel("owner-1", "alpha")
        second = await registry.create_channel("owner-1", "beta")

        assert first.secret != second.secret

    async def test_duplicate_name_raises_conflict(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.execute.side_effect = ["INSERT 0 0", asyncpg.UniqueViolationError("duplicate key")]

        with pytest.raises(RecordConflict):
            await registry.create_channel("owner-2", "alpha")


class TestSetAnnounce:
    async def test_updates_existing_row(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.execute.return_value = "UPDATE 1"

        await registry.set_announce("owner-1", "alpha", False)

        args = fake_pg.client.execute.await_args.args
        assert args[1:] == (False, "owner-1", "alpha")

    async def test_zero_rows_raises_not_found(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.execute.return_value = "UPDATE 0"

        with pytest.raises(RecordNotFound):
            await registry.set_announce("owner-1", "missing", True)


class TestFindChannel:
    async def test_returns_authorization_and_secret(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.fetchrow.return_value = {
            "user_id": "owner-1",
            "name": "alpha",
            "key": "s" * 48,
            "effective_announce": True,
        }

        auth, secret = await registry.find_channel_by_column(LookupColumn.NAME, "alpha")

        assert auth.owner_id == "owner-1"
        assert auth.name == "alpha"
        assert auth.effective_announce is True
        assert secret == "s" * 48

    async def test_ftl_lookup_matches_ftl_column(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.fetchrow.return_value = {
            "user_id": "owner-1",
            "name": "alpha",
            "key": "k",
            "effective_announce": False,
        }

        await registry.find_channel_by_column(LookupColumn.FTL_ID, "123")

        query = fake_pg.client.fetchrow.await_args.args[0]
        assert "channel_defs.ftl_id = $1" in query
        assert "LEFT JOIN users" in query
        assert "COALESCE" in query

    async def test_unknown_column_is_rejected(self, registry: ChannelRegistry, fake_pg):
        with pytest.raises(ValueError):
            await registry.find_channel_by_column("user_id", "owner-1")  # type: ignore[arg-type]

        fake_pg.client.fetchrow.assert_not_awaited()

    async def test_missing_row_raises_not_found(self, registry: ChannelRegistry):
        with pytest.raises(RecordNotFound):
            await registry.find_channel_by_column(LookupColumn.NAME, "nobody")


class TestThumbnails:
    async def test_get_missing_thumbnail(self, registry: ChannelRegistry):
        with pytest.raises(RecordNotFound):
            await registry.get_thumbnail("alpha")

    async def test_get_thumbnail_returns_bytes(self, registry: ChannelRegistry, fake_pg):
        fake_pg.client.fetchval.return_value = b"\xff\xd8jpeg"

        assert await registry.get_thumbnail("alpha") == b"\xff\xd8jpeg"

    async def test_put_thumbnail_refreshes_updated(self, registry: ChannelRegistry, fake_pg):
        await registry.put_thumbnail("alpha", b"jpeg")

        query = fake_pg.client.execute.await_args.args[0]
        assert "ON CONFLICT (name) DO UPDATE" in query
        assert "updated = now()" in query

    async def test_list_liveness_returns_store_clock(self, registry: ChannelRegistry, fake_pg):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        fake_pg.client.fetch.return_value = [
            {"name": "alpha", "updated": datetime(2024, 5, 1, 11, 59, tzinfo=timezone.utc), "now": now},
        ]

        rows, store_now = await registry.list_liveness()

        assert [row.name for row in rows] == ["alpha"]
        assert store_now == now

    async def test_list_liveness_filters_on_effective_announce(self, registry: ChannelRegistry, fake_pg):
        await registry.list_liveness()

        query = fake_pg.client.fetch.await_args.args[0]
        assert "JOIN channel_defs USING (name)" in query
        assert "LEFT JOIN users USING (user_id)" in query
        assert "WHERE COALESCE(channel_defs.announce AND users.announce, false)" in query

    async def test_list_liveness_empty(self, registry: ChannelRegistry):
        rows, store_now = await registry.list_liveness()

        assert rows == []
        assert store_now is None


class TestStoreFailures:
    @pytest.mark.parametrize("exc", [OSError("connection refused"), asyncio.TimeoutError()])
    async def test_transport_errors_become_store_unavailable(self, registry: ChannelRegistry, fake_pg, exc):
        fake_pg.client.fetch.side_effect = exc

        with pytest.raises(StoreUnavailable):
            await registry.get_channels_by_owner("owner-1")

    async def test_init_schema_creates_tables(self, registry: ChannelRegistry, fake_pg):
        await registry.init_schema()

        fake_pg.client.execute.assert_awaited_once_with(SCHEMA_SQL)
