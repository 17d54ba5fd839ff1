"""Publisher authentication for the two ingest protocols.

RTMP carries a static key in the connection URL; FTL answers a nonce
challenge with HMAC-SHA512(key=secret, msg=nonce). Both resolve through the
registry and both collapse every failure into one error so callers cannot
tell an unknown channel from a wrong key. Comparisons are constant time and a
comparison is still made when the lookup misses.
"""

import hashlib
import hmac
import posixpath
from urllib.parse import parse_qs, unquote, urlsplit

from loguru import logger

from streamgate.domain.channel.channel_domain import store_failure
from streamgate.domain.channel.channel_models import ChannelAuthorization, LookupColumn
from streamgate.domain.channel.registry import ChannelRegistry, RecordNotFound, StoreUnavailable
from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

# Same shape as a real secret so a miss costs the same as a mismatch
_DUMMY_SECRET = "0" * 48


def user_not_found() -> AppError:
    return AppError(
        errcode=AppErrorCode.E_USER_NOT_FOUND,
        errmesg="user not found or wrong key",
        status_code=HttpStatusCode.FORBIDDEN,
    )


def ftl_digest(secret: str, nonce: bytes) -> bytes:
    return hmac.new(secret.encode(), nonce, hashlib.sha512).digest()


class IngestAuthenticator:
    def __init__(self, registry: ChannelRegistry):
        self._registry = registry

    async def _lookup(self, column: LookupColumn, value: str) -> tuple[ChannelAuthorization | None, str]:
        try:
            auth, secret = await self._registry.find_channel_by_column(column, value)
        except RecordNotFound:
            return None, _DUMMY_SECRET
        except StoreUnavailable as exc:
            raise store_failure(exc) from exc
        return auth, secret

    async def authenticate_rtmp(self, name: str, provided_key: str) -> ChannelAuthorization:
        auth, secret = await self._lookup(LookupColumn.NAME, name)
        matched = hmac.compare_digest(provided_key.encode(), secret.encode())
        if auth is None or not matched:
            raise user_not_found()
        return auth

    async def authenticate_rtmp_url(self, url: str) -> ChannelAuthorization:
        """Authenticate an RTMP publish URL such as rtmp://host/live/<name>?key=<secret>."""
        parts = urlsplit(url)
        name = unquote(posixpath.basename(parts.path.rstrip("/")))
        key = parse_qs(parts.query).get("key", [""])[0]
        return await self.authenticate_rtmp(name, key)

    async def authenticate_ftl(self, ftl_id: str, nonce: bytes, provided_digest: bytes) -> ChannelAuthorization:
        auth, secret = await self._lookup(LookupColumn.FTL_ID, ftl_id)
        expected = ftl_digest(secret, nonce)
        if not hmac.compare_digest(expected, provided_digest):
            if auth is not None:
                logger.error("hmac digest mismatch for FTL channel {}", auth.name)
            raise user_not_found()
        if auth is None:
            raise user_not_found()
        return auth
