import pytest

from blogapi.client.errors import ApiError, ErrorKind
from blogapi.services.auth_service import OAUTH_DEFAULT_EXPIRES_IN, AuthService
from blogapi.services.models import AuthResponse, TokenData

from conftest import response

USER = {"_id": "u1", "email": "reader@example.com", "name": "Reader", "role": "user", "isVerified": True}


def auth_payload(**tokens):
    return {
        "success": True,
        "data": {"user": USER, "accessToken": "access-1", "refreshToken": "refresh-1", "expiresIn": 900, **tokens},
    }


@pytest.fixture
def auth(access):
    return AuthService(access)


@pytest.mark.asyncio
async def test_login_stores_tokens(auth, transport, credentials):
    transport.queue(response(200, auth_payload()))

    result = await auth.login("reader@example.com", "secret")

    assert isinstance(result, AuthResponse)
    assert result.user.email == "reader@example.com"
    assert result.user.id == "u1"
    assert result.user.is_verified is True
    assert credentials.get_access() == "access-1"
    assert credentials.get_refresh() == "refresh-1"
    assert credentials.get_expiry() is not None
    assert transport.calls[0]["body"] == {"email": "reader@example.com", "password": "secret"}
    assert transport.calls[0]["path"] == "/api/v1/auth/login"


@pytest.mark.asyncio
async def test_login_accepts_flat_payload(auth, transport, credentials):
    transport.queue(response(200, auth_payload()["data"]))

    await auth.login("reader@example.com", "secret")

    assert credentials.get_access() == "access-1"


@pytest.mark.asyncio
async def test_login_invalid_credentials_propagates(auth, transport, credentials):
    transport.queue(response(401, {"message": "Invalid email or password"}))

    with pytest.raises(ApiError) as exc_info:
        await auth.login("reader@example.com", "wrong")

    assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
    assert exc_info.value.message == "Invalid email or password"
    assert credentials.get_access() is None


@pytest.mark.asyncio
async def test_login_malformed_response(auth, transport):
    transport.queue(response(200, {"success": True, "data": {"user": USER}}))

    with pytest.raises(ApiError) as exc_info:
        await auth.login("reader@example.com", "secret")

    assert exc_info.value.kind == "LOGIN_ERROR"


@pytest.mark.asyncio
async def test_register_stores_tokens(auth, transport, credentials):
    transport.queue(response(201, auth_payload(accessToken="access-new")))

    result = await auth.register("new@example.com", "secret", "New")

    assert result.access_token == "access-new"
    assert credentials.get_access() == "access-new"
    assert transport.calls[0]["body"] == {"email": "new@example.com", "password": "secret", "name": "New"}


@pytest.mark.asyncio
async def test_register_malformed_response(auth, transport):
    transport.queue(response(201, "created"))

    with pytest.raises(ApiError) as exc_info:
        await auth.register("new@example.com", "secret", "New")

    assert exc_info.value.kind == "REGISTER_ERROR"


@pytest.mark.asyncio
async def test_logout_clears_even_when_server_fails(auth, transport, credentials, navigator):
    credentials.save({"accessToken": "a", "refreshToken": "r"})
    transport.queue(*[response(500) for _ in range(4)])

    await auth.logout()

    assert auth.check_auth() is False
    assert credentials.get_refresh() is None
    assert navigator.location == "/"


@pytest.mark.asyncio
async def test_refresh_without_refresh_token(auth, transport):
    with pytest.raises(ApiError) as exc_info:
        await auth.refresh_access_token()

    assert exc_info.value.kind == "NO_REFRESH_TOKEN"
    assert exc_info.value.status_code == 401
    assert transport.calls == []


@pytest.mark.asyncio
async def test_refresh_stores_new_tokens(auth, transport, credentials):
    credentials.save({"accessToken": "old", "refreshToken": "r"})
    transport.queue(
        response(200, {"success": True, "data": {"accessToken": "fresh", "refreshToken": "r2", "expiresIn": 60}})
    )

    tokens = await auth.refresh_access_token()

    assert isinstance(tokens, TokenData)
    assert transport.calls[0]["body"] == {"refreshToken": "r"}
    assert credentials.get_access() == "fresh"
    assert credentials.get_refresh() == "r2"


@pytest.mark.asyncio
async def test_refresh_failure_clears_credentials(auth, transport, credentials):
    credentials.save({"accessToken": "old", "refreshToken": "r"})
    transport.queue(response(401, {"message": "Refresh token revoked"}))

    with pytest.raises(ApiError) as exc_info:
        await auth.refresh_access_token()

    assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
    assert credentials.get_access() is None
    assert credentials.get_refresh() is None


@pytest.mark.asyncio
async def test_refresh_malformed_response(auth, transport, credentials):
    credentials.save({"accessToken": "old", "refreshToken": "r"})
    transport.queue(response(200, {"success": True}))

    with pytest.raises(ApiError) as exc_info:
        await auth.refresh_access_token()

    assert exc_info.value.kind == "REFRESH_ERROR"
    assert exc_info.value.status_code == 401
    assert credentials.get_access() is None


@pytest.mark.asyncio
async def test_get_current_user(auth, transport):
    transport.queue(response(200, {"success": True, "data": {"user": USER}}))

    user = await auth.get_current_user()

    assert user.user_id == "u1"
    assert user.name == "Reader"


@pytest.mark.asyncio
async def test_get_current_user_malformed(auth, transport):
    transport.queue(response(200, {"success": True, "data": {"user": {"name": "x"}}}))

    with pytest.raises(ApiError) as exc_info:
        await auth.get_current_user()

    assert exc_info.value.kind == "PROFILE_ERROR"


@pytest.mark.asyncio
async def test_update_profile_sends_only_given_fields(auth, transport):
    transport.queue(response(200, {"success": True, "data": {"user": {**USER, "name": "Renamed"}}}))

    user = await auth.update_profile(name="Renamed", avatar=None)

    assert user.name == "Renamed"
    assert transport.calls[0]["method"] == "PATCH"
    assert transport.calls[0]["body"] == {"name": "Renamed"}


@pytest.mark.asyncio
async def test_update_profile_malformed(auth, transport):
    transport.queue(response(200, {"success": True, "data": []}))

    with pytest.raises(ApiError) as exc_info:
        await auth.update_profile(name="Renamed")

    assert exc_info.value.kind == "UPDATE_PROFILE_ERROR"


def test_store_tokens_from_oauth(auth, credentials, clock):
    auth.store_tokens_from_oauth("oauth-access", "oauth-refresh")

    assert auth.check_auth() is True
    assert credentials.get_refresh() == "oauth-refresh"
    assert (credentials.get_expiry() - clock()).total_seconds() == OAUTH_DEFAULT_EXPIRES_IN
