"""
Authentication service for the blog site client.

Wraps the account endpoints (login, registration, logout, token refresh,
profile) and keeps the credential store in step with them.
"""
import logging
from typing import Any, Optional

from blogapi.auth.store import CredentialStore
from blogapi.client.access import AccessLayer
from blogapi.client.errors import ApiError
from blogapi.diagnostics import DiagnosticSink
from blogapi.services.models import AuthResponse, TokenData, User

# Configure logger
logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/v1/auth/login"
REGISTER_PATH = "/api/v1/auth/register"
LOGOUT_PATH = "/api/v1/auth/logout"
REFRESH_PATH = "/api/v1/auth/refresh"
ME_PATH = "/api/v1/auth/me"
PROFILE_PATH = "/api/v1/auth/profile"

# Expiry assumed for tokens handed over by an OAuth callback
OAUTH_DEFAULT_EXPIRES_IN = 900


def unwrap(payload: Any) -> Any:
    """Return the ``data`` member of a ``{success, data}`` envelope, or the payload itself."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


class AuthService:
    """
    Account operations over the access layer.

    Example:
        auth = AuthService(access)
        result = await auth.login("reader@example.com", "secret")
        me = await auth.get_current_user()
    """

    def __init__(
        self,
        access: AccessLayer,
        credentials: Optional[CredentialStore] = None,
        diagnostics: Optional[DiagnosticSink] = None,
    ):
        """
        Initialize the auth service.

        Args:
            access: Access layer every call goes through
            credentials: Credential store (defaults to the access layer's)
            diagnostics: Diagnostic sink (defaults to the access layer's)
        """
        self.access = access
        self.credentials = credentials or access.credentials
        self.diagnostics = diagnostics or access.diagnostics

    def _store(self, tokens: TokenData) -> None:
        if not self.credentials.save(tokens.to_wire()):
            logger.warning("Signed in but credentials could not be persisted")

    async def login(self, email: str, password: str) -> AuthResponse:
        """
        Log in with email and password and store the returned tokens.

        Raises:
            ApiError: Classified error from the access layer, or LOGIN_ERROR
        """
        try:
            payload = await self.access.post(LOGIN_PATH, {"email": email, "password": password})
            result = AuthResponse.model_validate(unwrap(payload))
        except ApiError:
            raise
        except Exception as e:
            raise ApiError("Login failed", kind="LOGIN_ERROR") from e

        self._store(result.token_data())
        logger.info(f"Logged in as {result.user.email}")
        return result

    async def register(self, email: str, password: str, name: str) -> AuthResponse:
        """
        Register a new account and store the returned tokens.

        Raises:
            ApiError: Classified error from the access layer, or REGISTER_ERROR
        """
        try:
            payload = await self.access.post(
                REGISTER_PATH, {"email": email, "password": password, "name": name}
            )
            result = AuthResponse.model_validate(unwrap(payload))
        except ApiError:
            raise
        except Exception as e:
            raise ApiError("Registration failed", kind="REGISTER_ERROR") from e

        self._store(result.token_data())
        logger.info(f"Registered {result.user.email}")
        return result

    async def logout(self) -> None:
        """
        Log out on the server and always clear local credentials.

        A failing logout call is logged, not raised: the local session ends
        either way.
        """
        try:
            await self.access.post(LOGOUT_PATH)
        except ApiError as e:
            self.diagnostics.error("Logout error", e)
        finally:
            self.credentials.clear()
            self.access.navigator.navigate("/")

    async def refresh_access_token(self) -> TokenData:
        """
        Exchange the stored refresh token for a new credential record.

        Any failure clears the stored credentials.

        Raises:
            ApiError: NO_REFRESH_TOKEN when none is stored, the classified
                error from the access layer, or REFRESH_ERROR
        """
        refresh_token = self.credentials.get_refresh()
        if not refresh_token:
            raise ApiError("No refresh token available", 401, "NO_REFRESH_TOKEN")

        try:
            payload = await self.access.post(REFRESH_PATH, {"refreshToken": refresh_token})
            tokens = TokenData.model_validate(unwrap(payload))
        except ApiError:
            self.credentials.clear()
            raise
        except Exception as e:
            self.credentials.clear()
            raise ApiError("Token refresh failed", 401, "REFRESH_ERROR") from e

        self._store(tokens)
        logger.debug("Refreshed access token")
        return tokens

    async def get_current_user(self) -> User:
        """
        Fetch the signed-in user's profile.

        Raises:
            ApiError: Classified error from the access layer, or PROFILE_ERROR
        """
        try:
            payload = unwrap(await self.access.get(ME_PATH))
            return User.model_validate(payload.get("user", payload))
        except ApiError:
            raise
        except Exception as e:
            raise ApiError("Failed to get user profile", kind="PROFILE_ERROR") from e

    async def update_profile(self, **changes: Any) -> User:
        """
        Update profile fields (e.g. ``name``, ``avatar``).

        Raises:
            ApiError: Classified error from the access layer, or UPDATE_PROFILE_ERROR
        """
        body = {key: value for key, value in changes.items() if value is not None}
        try:
            payload = unwrap(await self.access.patch(PROFILE_PATH, body))
            return User.model_validate(payload.get("user", payload))
        except ApiError:
            raise
        except Exception as e:
            raise ApiError("Failed to update profile", kind="UPDATE_PROFILE_ERROR") from e

    def check_auth(self) -> bool:
        return self.credentials.is_authenticated()

    def store_tokens_from_oauth(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Store tokens handed over by an OAuth callback."""
        self._store(
            TokenData(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_in=OAUTH_DEFAULT_EXPIRES_IN,
            )
        )
