"""OAuth login flow: initiate, callback (state check, code exchange, session), logout, identity."""

import base64
import hmac
import secrets

from loguru import logger

from streamgate.services.integrations.oauth_provider import OAuthProviderClient, ProviderError
from streamgate.shared.security.sealer import CookieDirective, CookieSealer, SealError
from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .login_models import (
    LOGIN_COOKIE_TTL,
    STATE_COOKIE_TTL,
    STATE_TOKEN_BYTES,
    LoginState,
    LoginStep,
    SessionIdentity,
)
from .login_state_machine import LoginStateMachine


class LoginError(AppError):
    """AppError that still carries cookie changes the response must apply."""

    def __init__(self, *args, cookies: list[CookieDirective] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.cookies = list(cookies or [])


def new_state_token() -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(STATE_TOKEN_BYTES)).rstrip(b"=").decode()


class LoginFlow:
    def __init__(
        self,
        sealer: CookieSealer | None,
        provider: OAuthProviderClient,
        *,
        state_cookie_name: str = "oauth_state",
        login_cookie_name: str = "login",
        avatar_base_url: str = "/avatars",
    ):
        self._sealer = sealer
        self._provider = provider
        self.state_cookie_name = state_cookie_name
        self.login_cookie_name = login_cookie_name
        self._avatar_base_url = avatar_base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        """Login needs both a provider client and a cookie sealing key."""
        return self._sealer is not None and self._provider.configured

    def _require_configured(self, cookies: list[CookieDirective] | None = None) -> None:
        if not self.configured:
            raise LoginError(
                errcode=AppErrorCode.E_CONFIGURATION,
                errmesg="oauth not configured",
                status_code=HttpStatusCode.BAD_REQUEST,
                cookies=cookies,
            )

    def initiate(self) -> LoginStep:
        """Issue a sealed CSRF state cookie and point the browser at the provider."""
        self._require_configured()
        state = new_state_token()
        return LoginStep(
            state=LoginState.STATE_PENDING,
            redirect_url=self._provider.authorization_url(state),
            cookies=[self._sealer.cookie(self.state_cookie_name, state, STATE_COOKIE_TTL)],
        )

    async def callback(
        self,
        code: str | None,
        state: str | None,
        state_cookie: str | None,
        remote_addr: str = "unknown",
    ) -> LoginStep:
        """Verify the returned state, exchange the code and establish the session.

        The state cookie is consumed by every outcome. State verification
        happens before any call to the provider.
        """
        consumed = [CookieSealer.clear(self.state_cookie_name)]
        self._require_configured(consumed)

        if not code:
            raise LoginError(
                errcode=AppErrorCode.E_MISSING_CODE,
                errmesg="missing code",
                status_code=HttpStatusCode.BAD_REQUEST,
                cookies=consumed,
            )

        current = LoginState.STATE_PENDING if state_cookie else LoginState.UNAUTHENTICATED
        if not LoginStateMachine.can_transition(current, LoginState.AUTHENTICATED):
            raise self._state_mismatch(consumed, remote_addr, "no state cookie")

        try:
            expected = self._sealer.unseal(state_cookie, self.state_cookie_name)
        except SealError as exc:
            raise self._state_mismatch(consumed, remote_addr, f"state cookie rejected: {exc}") from exc

        if not isinstance(expected, str) or not hmac.compare_digest(
            expected.encode(), (state or "").encode()
        ):
            raise self._state_mismatch(consumed, remote_addr, "state mismatch")

        try:
            token = await self._provider.exchange_code(code)
        except ProviderError as exc:
            logger.error("[oauth] error: {}: {}", remote_addr, exc)
            raise LoginError(
                errcode=AppErrorCode.E_UPSTREAM_FAILURE,
                errmesg="oauth failure",
                status_code=HttpStatusCode.BAD_REQUEST,
                cookies=consumed,
            ) from exc

        try:
            user = await self._provider.fetch_user(token)
        except ProviderError as exc:
            logger.error("[oauth] error: {}: {}", remote_addr, exc)
            raise LoginError(
                errcode=AppErrorCode.E_UPSTREAM_FAILURE,
                errmesg="error getting user info from identity provider",
                status_code=HttpStatusCode.BAD_REQUEST,
                cookies=consumed,
            ) from exc

        logger.info("[oauth] login for user {} from {}", user.id, remote_addr)
        return LoginStep(
            state=LoginState.AUTHENTICATED,
            redirect_url="/",
            cookies=consumed
            + [self._sealer.cookie(self.login_cookie_name, user.model_dump(), LOGIN_COOKIE_TTL)],
        )

    def _state_mismatch(self, cookies: list[CookieDirective], remote_addr: str, cause: str) -> LoginError:
        logger.warning("[oauth] error: {}: {}", remote_addr, cause)
        return LoginError(
            errcode=AppErrorCode.E_STATE_MISMATCH,
            errmesg="state mismatch",
            status_code=HttpStatusCode.BAD_REQUEST,
            cookies=cookies,
        )

    def logout(self) -> LoginStep:
        return LoginStep(
            state=LoginState.LOGGED_OUT,
            cookies=[CookieSealer.clear(self.login_cookie_name)],
        )

    def _unseal_identity(self, login_cookie: str | None) -> SessionIdentity | None:
        if self._sealer is None:
            return None
        try:
            payload = self._sealer.unseal(login_cookie, self.login_cookie_name)
            identity = SessionIdentity.model_validate(payload)
        except (SealError, ValueError):
            return None
        return None if identity.is_anonymous else identity

    def read_identity(self, login_cookie: str | None) -> SessionIdentity:
        """Identity for UI display; anonymous (all fields empty) when not signed in."""
        identity = self._unseal_identity(login_cookie)
        if identity is None:
            return SessionIdentity()
        if identity.avatar:
            identity = identity.model_copy(
                update={"avatar": f"{self._avatar_base_url}/{identity.id}/{identity.avatar}.png"}
            )
        return identity

    def require_identity(self, login_cookie: str | None, remote_addr: str = "unknown") -> SessionIdentity:
        """Identity for access control; raises E_NOT_AUTHORIZED when not signed in."""
        identity = self._unseal_identity(login_cookie)
        if identity is None:
            logger.warning("authentication failed for {}", remote_addr)
            raise AppError(
                errcode=AppErrorCode.E_NOT_AUTHORIZED,
                errmesg="not authorized",
                status_code=HttpStatusCode.UNAUTHORIZED,
            )
        return identity
