from pydantic import BaseModel

from streamgate.shared.config import config


def _flag(key: str, default: str) -> bool:
    return (config.get(key) or default).strip().lower() == "true"


class AppEnvironConfig(BaseModel):
    DEBUG: bool = _flag("DEBUG", "false")

    API_HOST: str = (config.get("API_HOST") or "").strip() or "0.0.0.0"
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 8080)
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)

    # Public URL of this app, used to build the OAuth redirect URI
    BASE_URL: str = (config.get("BASE_URL") or "").strip().rstrip("/") or "http://localhost:8080"

    # Identity provider (standard authorization-code grant)
    OAUTH_CLIENT_ID: str = (config.get("OAUTH_CLIENT_ID") or "").strip()
    OAUTH_CLIENT_SECRET: str = (config.get("OAUTH_CLIENT_SECRET") or "").strip()
    OAUTH_AUTHORIZE_URL: str = (
        config.get("OAUTH_AUTHORIZE_URL") or ""
    ).strip() or "https://discord.com/api/oauth2/authorize"
    OAUTH_TOKEN_URL: str = (
        config.get("OAUTH_TOKEN_URL") or ""
    ).strip() or "https://discord.com/api/oauth2/token"
    OAUTH_USER_URL: str = (config.get("OAUTH_USER_URL") or "").strip() or "https://discord.com/api/users/@me"
    OAUTH_SCOPES: list[str] = ((config.get("OAUTH_SCOPES") or "").strip() or "identify guilds").split()

    # Cookies
    # Empty disables login: nothing is sealed or unsealed without a key
    COOKIE_SECRET: str = (config.get("COOKIE_SECRET") or "").strip()
    COOKIE_SECURE: bool = _flag("COOKIE_SECURE", "false" if _flag("DEBUG", "false") else "true")
    STATE_COOKIE_NAME: str = (config.get("STATE_COOKIE_NAME") or "").strip() or "oauth_state"
    LOGIN_COOKIE_NAME: str = (config.get("LOGIN_COOKIE_NAME") or "").strip() or "login"

    # Public URL prefixes handed to the UI
    RTMP_BASE: str = (config.get("RTMP_BASE") or "").strip() or "rtmp://localhost/live"
    AVATAR_BASE_URL: str = (config.get("AVATAR_BASE_URL") or "").strip().rstrip("/") or "/avatars"
    THUMB_BASE_URL: str = (config.get("THUMB_BASE_URL") or "").strip().rstrip("/") or "/thumbs"
    LIVE_BASE_URL: str = (config.get("LIVE_BASE_URL") or "").strip().rstrip("/") or "/live"

    # Registry store
    PG_POOL_MAX_SIZE: int = int((config.get("PG_POOL_MAX_SIZE") or "").strip() or 10)
    PG_COMMAND_TIMEOUT: float = float((config.get("PG_COMMAND_TIMEOUT") or "").strip() or 5)

    # Shared key for media engine hooks
    INTERNAL_API_KEY: str = (config.get("INTERNAL_API_KEY") or "").strip()

    @property
    def oauth_configured(self) -> bool:
        return bool(self.OAUTH_CLIENT_ID)

    @property
    def cookie_configured(self) -> bool:
        return bool(self.COOKIE_SECRET)

    @property
    def oauth_redirect_url(self) -> str:
        return f"{self.BASE_URL}/oauth2/cb"


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
