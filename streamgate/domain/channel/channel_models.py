"""Channel domain models."""

from datetime import datetime
from enum import StrEnum
from urllib.parse import quote, urlencode

from pydantic import BaseModel


class LookupColumn(StrEnum):
    """Columns the ingest lookup is allowed to match on."""

    NAME = "name"
    FTL_ID = "ftl_id"


class ChannelIdentity(BaseModel):
    """One publishable channel as stored in the registry."""

    owner_id: str
    name: str
    secret: str
    ftl_id: str | None = None
    announce: bool = True


class ChannelAuthorization(BaseModel):
    """Result of a successful ingest authentication, handed to the media engine."""

    owner_id: str
    name: str
    effective_announce: bool


class ChannelDef(BaseModel):
    """Owner-facing channel definition, including the ingest URL parts."""

    name: str
    key: str
    announce: bool
    rtmp_dir: str = ""
    rtmp_base: str = ""

    @classmethod
    def from_identity(cls, identity: ChannelIdentity, rtmp_base: str) -> "ChannelDef":
        return cls(
            name=identity.name,
            key=identity.secret,
            announce=identity.announce,
            rtmp_dir=rtmp_base,
            rtmp_base=quote(identity.name, safe="") + "?" + urlencode({"key": identity.secret}),
        )


class LivenessRow(BaseModel):
    name: str
    updated_at: datetime
