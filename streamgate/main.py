import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from streamgate.api.errors import app_error_handler, validation_exception_handler
from streamgate.api.routers import channels, defs, ingest, oauth
from streamgate.app_config import get_app_environ_config
from streamgate.domain.channel.channel_domain import ChannelService
from streamgate.domain.channel.registry import ChannelRegistry
from streamgate.domain.directory.directory import LivenessDirectory
from streamgate.domain.ingest.authenticator import IngestAuthenticator
from streamgate.domain.login.login_flow import LoginFlow
from streamgate.services.integrations.oauth_provider import OAuthProviderClient
from streamgate.shared.api.utils import api_failure, init_logger
from streamgate.shared.config import config
from streamgate.shared.security.sealer import CookieSealer
from streamgate.shared.storage.postgres import PostgresManager
from streamgate.utils.app_errors import AppError, AppErrorCode

SECURITY_HEADERS = {
    "Cache-Control": "private, no-cache, must-revalidate",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
}


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(status_code=500, content=failure.model_dump())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def build_services(server: FastAPI, pg: PostgresManager) -> None:
    """Wire the domain services onto app.state."""
    settings = get_app_environ_config()

    registry = ChannelRegistry(pg)
    provider = OAuthProviderClient(
        client_id=settings.OAUTH_CLIENT_ID,
        client_secret=settings.OAUTH_CLIENT_SECRET,
        authorize_url=settings.OAUTH_AUTHORIZE_URL,
        token_url=settings.OAUTH_TOKEN_URL,
        user_url=settings.OAUTH_USER_URL,
        redirect_url=settings.oauth_redirect_url,
        scopes=settings.OAUTH_SCOPES,
    )

    server.state.registry = registry
    server.state.channel_service = ChannelService(registry, settings.RTMP_BASE)
    server.state.authenticator = IngestAuthenticator(registry)
    server.state.directory = LivenessDirectory(registry)
    server.state.login_flow = LoginFlow(
        CookieSealer(settings.COOKIE_SECRET) if settings.cookie_configured else None,
        provider,
        state_cookie_name=settings.STATE_COOKIE_NAME,
        login_cookie_name=settings.LOGIN_COOKIE_NAME,
        avatar_base_url=settings.AVATAR_BASE_URL,
    )


@asynccontextmanager
async def lifespan(server: FastAPI):
    settings = get_app_environ_config()
    init_logger(settings.DEBUG)

    logger.info("Application startup...")

    if not settings.oauth_configured:
        logger.warning("OAUTH_CLIENT_ID is not set, login endpoints will answer 400")
    if not settings.cookie_configured:
        logger.warning("COOKIE_SECRET is not set, login is disabled")

    pg = PostgresManager(
        config.get_postgres_url(),
        max_size=settings.PG_POOL_MAX_SIZE,
        command_timeout=settings.PG_COMMAND_TIMEOUT,
    )
    await pg.open()
    server.state.pg = pg

    build_services(server, pg)
    await server.state.registry.init_schema()

    yield

    logger.info("Application shutdown...")

    await pg.close()


app = FastAPI(
    version="1.0",
    title="streamgate",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(HTTPLoggingMiddleware)

app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(oauth.router)
app.include_router(defs.router)
app.include_router(channels.router)
app.include_router(ingest.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


def build_granian_kwargs():
    settings = get_app_environ_config()
    kwargs = {
        "interface": "asgi",
        "address": settings.API_HOST,
        "port": settings.API_PORT,
        "workers": settings.API_WORKERS,
        "reload": settings.DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("streamgate.main:app", **granian_kwargs).serve()
