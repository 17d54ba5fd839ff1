"""Identity provider client for the OAuth2 authorization-code grant."""

from urllib.parse import urlencode

import httpx
from loguru import logger
from pydantic import ValidationError

from streamgate.domain.login.login_models import SessionIdentity


class ProviderError(Exception):
    """Token exchange or profile fetch failed; message is for server logs only."""


class OAuthProviderClient:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        authorize_url: str,
        token_url: str,
        user_url: str,
        redirect_url: str,
        scopes: list[str],
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.user_url = user_url
        self.redirect_url = redirect_url
        self.scopes = list(scopes)
        self._transport = transport
        self._timeout = httpx.Timeout(5, connect=5, read=5)

    @property
    def configured(self) -> bool:
        return bool(self.client_id)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "scope": " ".join(self.scopes),
                "state": state,
            }
        )
        sep = "&" if "?" in self.authorize_url else "?"
        return f"{self.authorize_url}{sep}{query}"

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token.

        Client credentials go in the Basic auth header.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_url,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"token request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"token endpoint returned {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("token endpoint returned invalid JSON") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise ProviderError("token response missing access_token")
        logger.debug("token exchange ok, token_type={}", payload.get("token_type"))
        return token

    async def fetch_user(self, access_token: str) -> SessionIdentity:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.user_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"user request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"user endpoint returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("user endpoint returned invalid JSON") from exc

        if not isinstance(payload, dict) or not payload.get("id"):
            raise ProviderError("user response missing id")

        try:
            return SessionIdentity(
                id=str(payload["id"]),
                username=payload.get("username") or "",
                discriminator=payload.get("discriminator") or "",
                avatar=payload.get("avatar") or "",
            )
        except ValidationError as exc:
            raise ProviderError(f"user response has invalid fields: {exc.error_count()} error(s)") from exc
