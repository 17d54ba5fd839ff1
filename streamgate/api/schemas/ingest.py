from pydantic import BaseModel, Field, field_validator, model_validator


class RtmpAuthIn(BaseModel):
    """Either the full publish URL or the name/key pair already split out of it."""

    url: str | None = None
    name: str | None = None
    key: str = ""

    @model_validator(mode="after")
    def check_target(self):
        if not self.url and not self.name:
            raise ValueError("either url or name is required")
        return self


class FtlAuthIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    nonce: bytes
    digest: bytes

    @field_validator("nonce", "digest", mode="before")
    @classmethod
    def decode_hex(cls, value):
        if isinstance(value, str):
            try:
                return bytes.fromhex(value)
            except ValueError as exc:
                raise ValueError("must be hex encoded") from exc
        return value


class ChannelAuthorizationOut(BaseModel):
    owner_id: str
    name: str
    effective_announce: bool
