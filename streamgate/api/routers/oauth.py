"""Browser login endpoints.

These follow the browser contract: redirects on success and bare JSON bodies,
not the ApiOut envelope.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import ORJSONResponse, RedirectResponse, Response

from streamgate.api.dependency import get_login_flow, get_settings
from streamgate.api.errors import app_error_handler
from streamgate.app_config import AppEnvironConfig
from streamgate.domain.login.login_flow import LoginError, LoginFlow
from streamgate.domain.login.login_models import SessionIdentity
from streamgate.shared.api.utils import get_remote_addr
from streamgate.shared.security.sealer import CookieDirective

router = APIRouter(prefix="/oauth2", tags=["OAuth"])


def apply_cookies(response: Response, cookies: list[CookieDirective], *, secure: bool) -> Response:
    """Write cookie directives as host-only, HttpOnly, SameSite=Lax cookies on /."""
    for cookie in cookies:
        if cookie.clears:
            response.delete_cookie(cookie.name, path="/", secure=secure, httponly=True, samesite="lax")
        else:
            response.set_cookie(
                cookie.name,
                cookie.value,
                max_age=cookie.max_age,
                path="/",
                secure=secure,
                httponly=True,
                samesite="lax",
            )
    return response


@router.get("/initiate")
async def initiate(
    flow: LoginFlow = Depends(get_login_flow),
    settings: AppEnvironConfig = Depends(get_settings),
) -> RedirectResponse:
    step = flow.initiate()
    response = RedirectResponse(step.redirect_url, status_code=302)
    return apply_cookies(response, step.cookies, secure=settings.COOKIE_SECURE)


@router.get("/cb")
async def callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    flow: LoginFlow = Depends(get_login_flow),
    settings: AppEnvironConfig = Depends(get_settings),
) -> Response:
    try:
        step = await flow.callback(
            code=code,
            state=state,
            state_cookie=request.cookies.get(flow.state_cookie_name),
            remote_addr=get_remote_addr(request),
        )
    except LoginError as exc:
        # Error responses still consume the state cookie
        response = await app_error_handler(request, exc)
        return apply_cookies(response, exc.cookies, secure=settings.COOKIE_SECURE)

    response = RedirectResponse(step.redirect_url or "/", status_code=302)
    return apply_cookies(response, step.cookies, secure=settings.COOKIE_SECURE)


@router.post("/logout")
async def logout(
    flow: LoginFlow = Depends(get_login_flow),
    settings: AppEnvironConfig = Depends(get_settings),
) -> Response:
    step = flow.logout()
    return apply_cookies(ORJSONResponse({}), step.cookies, secure=settings.COOKIE_SECURE)


@router.get("/user")
async def current_user(request: Request, flow: LoginFlow = Depends(get_login_flow)) -> SessionIdentity:
    """Signed-in identity for the UI; all fields empty when anonymous."""
    return flow.read_identity(request.cookies.get(flow.login_cookie_name))
