"""Tests for the OAuth login flow."""

from urllib.parse import parse_qs, urlsplit

import pytest

from streamgate.domain.login.login_flow import LoginError, LoginFlow
from streamgate.domain.login.login_models import (
    LOGIN_COOKIE_TTL,
    STATE_COOKIE_TTL,
    LoginState,
    SessionIdentity,
)
from streamgate.services.integrations.oauth_provider import OAuthProviderClient
from streamgate.shared.security.sealer import CookieSealer
from streamgate.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def state_from(step) -> str:
    return parse_qs(urlsplit(step.redirect_url).query)["state"][0]


def cookie_named(step_or_exc, name: str):
    return next(c for c in step_or_exc.cookies if c.name == name)


class TestInitiate:
    def test_redirects_with_sealed_state(self, login_flow: LoginFlow, sealer):
        step = login_flow.initiate()

        assert step.state == LoginState.STATE_PENDING
        query = parse_qs(urlsplit(step.redirect_url).query)
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["client-1"]
        assert query["redirect_uri"] == ["http://testserver/oauth2/cb"]
        assert query["scope"] == ["identify guilds"]

        state = query["state"][0]
        assert len(state) == 12
        cookie = cookie_named(step, "oauth_state")
        assert cookie.max_age == STATE_COOKIE_TTL
        assert sealer.unseal(cookie.value, "oauth_state") == state

    def test_state_is_fresh_each_time(self, login_flow: LoginFlow):
        assert state_from(login_flow.initiate()) != state_from(login_flow.initiate())

    def test_unconfigured_provider(self, sealer):
        provider = OAuthProviderClient(
            client_id="",
            client_secret="",
            authorize_url="https://id.test/authorize",
            token_url="https://id.test/token",
            user_url="https://id.test/me",
            redirect_url="http://testserver/oauth2/cb",
            scopes=["identify"],
        )

        with pytest.raises(AppError) as exc_info:
            LoginFlow(sealer, provider).initiate()

        assert exc_info.value.errcode == AppErrorCode.E_CONFIGURATION
        assert exc_info.value.status_code == HttpStatusCode.BAD_REQUEST


class TestCallback:
    async def test_success_sets_login_cookie(self, login_flow: LoginFlow, sealer, identity_provider):
        start = login_flow.initiate()
        state_cookie = cookie_named(start, "oauth_state").value

        step = await login_flow.callback("the-code", state_from(start), state_cookie, "10.0.0.1")

        assert step.state == LoginState.AUTHENTICATED
        assert step.redirect_url == "/"
        assert cookie_named(step, "oauth_state").clears
        login = cookie_named(step, "login")
        assert login.max_age == LOGIN_COOKIE_TTL
        assert sealer.unseal(login.value, "login") == {
            "id": "4242",
            "username": "streamer",
            "discriminator": "0001",
            "avatar": "a1b2c3",
        }
        assert len(identity_provider.token_requests) == 1

    async def test_state_mismatch_never_calls_provider(self, login_flow: LoginFlow, identity_provider):
        start = login_flow.initiate()
        state_cookie = cookie_named(start, "oauth_state").value

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback("the-code", "forged-state", state_cookie)

        assert exc_info.value.errcode == AppErrorCode.E_STATE_MISMATCH
        assert cookie_named(exc_info.value, "oauth_state").clears
        assert identity_provider.requests == []

    async def test_missing_state_cookie_fails_closed(self, login_flow: LoginFlow, identity_provider):
        start = login_flow.initiate()

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback("the-code", state_from(start), None)

        assert exc_info.value.errcode == AppErrorCode.E_STATE_MISMATCH
        assert identity_provider.requests == []

    async def test_state_cookie_from_other_purpose_rejected(self, login_flow: LoginFlow, sealer):
        forged = sealer.seal("abc", 60, "login")

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback("the-code", "abc", forged)

        assert exc_info.value.errcode == AppErrorCode.E_STATE_MISMATCH

    async def test_missing_code(self, login_flow: LoginFlow):
        start = login_flow.initiate()

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback(None, state_from(start), cookie_named(start, "oauth_state").value)

        assert exc_info.value.errcode == AppErrorCode.E_MISSING_CODE
        assert cookie_named(exc_info.value, "oauth_state").clears

    async def test_token_exchange_failure_is_generic(self, login_flow: LoginFlow, identity_provider):
        identity_provider.token_status = 401
        identity_provider.token_payload = {"error": "invalid_grant", "error_description": "provider detail"}
        start = login_flow.initiate()

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback("bad-code", state_from(start), cookie_named(start, "oauth_state").value)

        assert exc_info.value.errcode == AppErrorCode.E_UPSTREAM_FAILURE
        assert "provider detail" not in exc_info.value.errmesg
        assert "invalid_grant" not in exc_info.value.errmesg

    async def test_profile_fetch_failure(self, login_flow: LoginFlow, identity_provider):
        identity_provider.user_status = 500
        start = login_flow.initiate()

        with pytest.raises(LoginError) as exc_info:
            await login_flow.callback("the-code", state_from(start), cookie_named(start, "oauth_state").value)

        assert exc_info.value.errcode == AppErrorCode.E_UPSTREAM_FAILURE
        assert not any(c.name == "login" for c in exc_info.value.cookies)


class TestIdentity:
    def test_missing_cookie_is_anonymous(self, login_flow: LoginFlow):
        identity = login_flow.read_identity(None)

        assert identity == SessionIdentity()
        assert identity.is_anonymous

    def test_garbage_cookie_is_anonymous(self, login_flow: LoginFlow):
        assert login_flow.read_identity("not-a-token").is_anonymous

    def test_avatar_is_rewritten(self, login_flow: LoginFlow, sealer):
        token = sealer.seal(
            {"id": "4242", "username": "streamer", "discriminator": "0001", "avatar": "a1b2c3"},
            60,
            "login",
        )

        identity = login_flow.read_identity(token)

        assert identity.username == "streamer"
        assert identity.avatar == "/avatars/4242/a1b2c3.png"

    def test_require_identity(self, login_flow: LoginFlow, sealer):
        token = sealer.seal({"id": "4242", "username": "streamer"}, 60, "login")

        assert login_flow.require_identity(token).id == "4242"

    def test_require_identity_rejects_anonymous(self, login_flow: LoginFlow):
        with pytest.raises(AppError) as exc_info:
            login_flow.require_identity(None, "10.0.0.2")

        assert exc_info.value.errcode == AppErrorCode.E_NOT_AUTHORIZED
        assert exc_info.value.status_code == HttpStatusCode.UNAUTHORIZED

    def test_logout_clears_login_cookie(self, login_flow: LoginFlow):
        step = login_flow.logout()

        assert step.state == LoginState.LOGGED_OUT
        assert cookie_named(step, "login").clears


class TestWithoutCookieSecret:
    @pytest.fixture
    def disabled_flow(self, provider_client: OAuthProviderClient) -> LoginFlow:
        return LoginFlow(None, provider_client)

    def test_not_configured(self, disabled_flow: LoginFlow):
        assert not disabled_flow.configured

    def test_initiate_refused(self, disabled_flow: LoginFlow):
        with pytest.raises(AppError) as exc_info:
            disabled_flow.initiate()

        assert exc_info.value.errcode == AppErrorCode.E_CONFIGURATION
        assert exc_info.value.status_code == HttpStatusCode.BAD_REQUEST

    async def test_callback_refused_and_clears_state(self, disabled_flow: LoginFlow, identity_provider):
        with pytest.raises(LoginError) as exc_info:
            await disabled_flow.callback("the-code", "state", "anything")

        assert exc_info.value.errcode == AppErrorCode.E_CONFIGURATION
        assert cookie_named(exc_info.value, "oauth_state").clears
        assert identity_provider.requests == []

    def test_cookie_sealed_with_old_default_is_rejected(self, disabled_flow: LoginFlow):
        forged = CookieSealer("dev-secret").seal({"id": "1", "username": "admin"}, 60, "login")

        assert disabled_flow.read_identity(forged).is_anonymous
        with pytest.raises(AppError) as exc_info:
            disabled_flow.require_identity(forged)
        assert exc_info.value.status_code == HttpStatusCode.UNAUTHORIZED

    def test_logout_still_clears(self, disabled_flow: LoginFlow):
        assert cookie_named(disabled_flow.logout(), "login").clears
