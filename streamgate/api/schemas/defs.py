from pydantic import BaseModel, Field

CHANNEL_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class CreateChannelIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=64, pattern=CHANNEL_NAME_PATTERN)


class UpdateAnnounceIn(BaseModel):
    announce: bool


class ChannelDefOut(BaseModel):
    """Channel definition as shown to its owner, ingest URL parts included."""

    name: str
    key: str
    announce: bool
    rtmp_dir: str
    rtmp_base: str
