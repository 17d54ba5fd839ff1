from typing import Annotated

from fastapi import Depends, Request

from streamgate.app_config import AppEnvironConfig, get_app_environ_config
from streamgate.domain.channel.channel_domain import ChannelService
from streamgate.domain.directory.directory import LivenessDirectory
from streamgate.domain.ingest.authenticator import IngestAuthenticator
from streamgate.domain.login.login_flow import LoginFlow
from streamgate.domain.login.login_models import SessionIdentity
from streamgate.shared.api.utils import get_remote_addr

# Services are built in the app lifespan and live on app.state;
# tests replace these providers through dependency_overrides.


def get_settings() -> AppEnvironConfig:
    return get_app_environ_config()


def get_channel_service(request: Request) -> ChannelService:
    return request.app.state.channel_service


def get_authenticator(request: Request) -> IngestAuthenticator:
    return request.app.state.authenticator


def get_login_flow(request: Request) -> LoginFlow:
    return request.app.state.login_flow


def get_directory(request: Request) -> LivenessDirectory:
    return request.app.state.directory


async def get_current_owner(
    request: Request, flow: LoginFlow = Depends(get_login_flow)
) -> SessionIdentity:
    # Do not log cookie values here.
    return flow.require_identity(request.cookies.get(flow.login_cookie_name), get_remote_addr(request))


CurrentOwner = Annotated[SessionIdentity, Depends(get_current_owner)]
