"""Login flow models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from streamgate.shared.security.sealer import CookieDirective

STATE_COOKIE_TTL = 15 * 60
LOGIN_COOKIE_TTL = 30 * 24 * 60 * 60
STATE_TOKEN_BYTES = 9


class LoginState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    STATE_PENDING = "state_pending"
    AUTHENTICATED = "authenticated"
    LOGGED_OUT = "logged_out"


class SessionIdentity(BaseModel):
    """Payload of the login cookie. All-empty means anonymous."""

    id: str = ""
    username: str = ""
    discriminator: str = ""
    avatar: str = ""

    @property
    def is_anonymous(self) -> bool:
        return not self.id


class LoginStep(BaseModel):
    """Outcome of one login-flow request: where the browser ends up and which cookies change."""

    state: LoginState
    redirect_url: str | None = None
    cookies: list[CookieDirective] = Field(default_factory=list)
