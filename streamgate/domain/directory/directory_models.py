"""Liveness directory models."""

from pydantic import BaseModel


class LiveChannel(BaseModel):
    name: str
    last: int  # milliseconds since epoch of the newest thumbnail


class DirectoryEntry(BaseModel):
    """Viewer listing entry."""

    name: str
    live: bool = False
    last: int
    thumb: str
    live_url: str
