"""
HTTP access layer for the blog site client.

Every network call the application makes goes through AccessLayer.request().
Each call runs an outbound stage (credential and correlation headers, request
diagnostics) and an inbound stage that either returns the response body or
turns the failure into exactly one ApiError, after running the session side
effects tied to that failure. Server errors (5xx) are retried with
exponential backoff; nothing else is retried.
"""
import asyncio
import logging
import re
import secrets
import time
from dataclasses import dataclass, field, fields
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from blogapi.auth.store import CredentialRecord, CredentialStore
from blogapi.client.errors import DEFAULT_MESSAGES, ApiError, ErrorKind, server_message
from blogapi.client.transport import AiohttpTransport, TransportResponse
from blogapi.config import Settings
from blogapi.diagnostics import DiagnosticSink
from blogapi.host import RATE_LIMIT_EVENT, EventBus, Navigator

# Configure logger
logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 2.0

# A 401 from these endpoints is a login-form error, not a dead session
AUTH_ENDPOINTS = ("/auth/login", "/auth/register", "/auth/refresh")

REQUEST_ID_HEADER = "X-Request-ID"

_RETRY_AFTER_RE = re.compile(r"^\s*(\d+)")


@dataclass
class RequestDescriptor:
    """One outbound call. Mutated by the outbound stage and the retry loop."""
    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    retry_count: int = 0

    @property
    def is_auth_endpoint(self) -> bool:
        return any(endpoint in self.path for endpoint in AUTH_ENDPOINTS)


@dataclass
class AccessLayerConfig:
    """Session callbacks read by the inbound stage on 401, 403 and 429."""
    on_unauthenticated: Callable[[], None]
    on_forbidden: Callable[[], None]
    on_rate_limited: Callable[[Optional[int]], None]


def generate_request_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Leading integer seconds of a Retry-After header, or None."""
    if not value:
        return None
    match = _RETRY_AFTER_RE.match(value)
    return int(match.group(1)) if match else None


class AccessLayer:
    """
    Single chokepoint for outbound API calls.

    The credential store is the only state shared between calls. Calls are
    not queued or coalesced; two concurrent calls may resolve in any order.

    Example:
        async with AccessLayer.from_settings(settings) as access:
            blogs = await access.get("/api/v1/blogs", params={"tag": "python"})
    """

    def __init__(
        self,
        transport=None,
        credentials: Optional[CredentialStore] = None,
        diagnostics: Optional[DiagnosticSink] = None,
        navigator: Optional[Navigator] = None,
        events: Optional[EventBus] = None,
        base_url: str = "http://localhost:3001",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        login_path: str = "/login",
        forbidden_path: str = "/forbidden",
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize the access layer.

        Args:
            transport: Object with async ``send()`` and ``close()``; defaults to
                an AiohttpTransport for ``base_url``
            credentials: Credential store read on every outbound stage
            diagnostics: Diagnostic sink for request/response/error events
            navigator: Navigation primitive used by the default callbacks
            events: Event bus used by the default rate-limit callback
            base_url: API base URL (used only when no transport is given)
            timeout_seconds: Timeout of a single attempt
            max_retries: Retry ceiling for 5xx responses
            backoff_base: Delay before retry n (0-based) is backoff_base ** n
            login_path: Surface for the default unauthenticated callback
            forbidden_path: Surface for the default forbidden callback
            sleep: Coroutine function used for backoff delays
        """
        self.transport = transport or AiohttpTransport(base_url, timeout_seconds=timeout_seconds)
        self.credentials = credentials if credentials is not None else CredentialStore()
        self.diagnostics = diagnostics or DiagnosticSink()
        self.navigator = navigator or Navigator()
        self.events = events or EventBus()
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep or asyncio.sleep

        self.config = AccessLayerConfig(
            on_unauthenticated=lambda: self.navigator.navigate(login_path),
            on_forbidden=lambda: self.navigator.navigate(forbidden_path),
            on_rate_limited=lambda retry_after: self.events.dispatch(
                RATE_LIMIT_EVENT, {"retryAfter": retry_after}
            ),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: Optional[CredentialStore] = None,
        **kwargs: Any,
    ) -> "AccessLayer":
        """Build an access layer from application settings."""
        api = settings.api
        kwargs.setdefault("diagnostics", DiagnosticSink.from_settings(settings))
        return cls(
            credentials=credentials,
            base_url=api.base_url,
            timeout_seconds=api.timeout_seconds,
            max_retries=api.max_retries,
            backoff_base=api.backoff_base_seconds,
            login_path=api.login_path,
            forbidden_path=api.forbidden_path,
            **kwargs,
        )

    async def __aenter__(self) -> "AccessLayer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    def configure(
        self,
        on_unauthenticated: Optional[Callable[[], None]] = None,
        on_forbidden: Optional[Callable[[], None]] = None,
        on_rate_limited: Optional[Callable[[Optional[int]], None]] = None,
    ) -> AccessLayerConfig:
        """
        Override session callbacks. Callbacks left as None keep their current value.

        Returns:
            The updated configuration
        """
        overrides = {
            "on_unauthenticated": on_unauthenticated,
            "on_forbidden": on_forbidden,
            "on_rate_limited": on_rate_limited,
        }
        for f in fields(self.config):
            if overrides[f.name] is not None:
                setattr(self.config, f.name, overrides[f.name])
        return self.config

    # Credential primitives

    def save_credentials(self, record) -> bool:
        return self.credentials.save(record)

    def clear_credentials(self) -> None:
        self.credentials.clear()

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()

    # Request API

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """
        Send a request and return the response body.

        The body is returned as the server sent it (decoded JSON), without
        unwrapping any envelope.

        Raises:
            ApiError: On any non-2xx outcome, after retries for 5xx responses
        """
        descriptor = RequestDescriptor(
            method=method.upper(),
            path=path,
            params=params,
            body=body,
        )

        while True:
            self._prepare(descriptor)
            response = await self._send(descriptor)

            if response.ok:
                self.diagnostics.api_response(
                    descriptor.method, descriptor.path, response.status, response.body
                )
                return response.body

            self.diagnostics.api_error(
                descriptor.method,
                descriptor.path,
                status=response.status,
                data=response.body,
                request_id=descriptor.headers.get(REQUEST_ID_HEADER),
            )

            if response.status >= 500 and descriptor.retry_count < self.max_retries:
                delay = self.backoff_base ** descriptor.retry_count
                descriptor.retry_count += 1
                self.diagnostics.warn(
                    f"API Retry: Attempt {descriptor.retry_count}/{self.max_retries} after {delay:g}s"
                )
                await self._sleep(delay)
                continue

            raise self._classify(descriptor, response)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, body=body)

    async def put(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, params=params, body=body)

    async def patch(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PATCH", path, params=params, body=body)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    # Stages

    def _prepare(self, descriptor: RequestDescriptor) -> None:
        """Outbound stage: credential and correlation headers, request event."""
        token = self.credentials.get_access()
        if token and not self.credentials.is_expired():
            descriptor.headers["Authorization"] = f"Bearer {token}"
        else:
            descriptor.headers.pop("Authorization", None)

        descriptor.headers[REQUEST_ID_HEADER] = generate_request_id()

        self.diagnostics.api_request(
            descriptor.method,
            descriptor.path,
            {"params": descriptor.params, "data": descriptor.body},
        )

    async def _send(self, descriptor: RequestDescriptor) -> TransportResponse:
        """Run one attempt; transport failures become ApiErrors here."""
        try:
            return await self.transport.send(
                descriptor.method,
                descriptor.path,
                headers=dict(descriptor.headers),
                params=descriptor.params,
                body=descriptor.body,
            )
        except (asyncio.TimeoutError, TimeoutError) as e:
            self.diagnostics.api_error(descriptor.method, descriptor.path, e, kind=ErrorKind.TIMEOUT.value)
            raise ApiError(DEFAULT_MESSAGES[ErrorKind.TIMEOUT], kind=ErrorKind.TIMEOUT) from e
        except (aiohttp.ClientError, OSError) as e:
            self.diagnostics.api_error(
                descriptor.method, descriptor.path, e, kind=ErrorKind.NETWORK_ERROR.value
            )
            raise ApiError(DEFAULT_MESSAGES[ErrorKind.NETWORK_ERROR], kind=ErrorKind.NETWORK_ERROR) from e

    def _classify(self, descriptor: RequestDescriptor, response: TransportResponse) -> ApiError:
        """
        Inbound stage for a failed response.

        Runs the side effects tied to the status (credential clearing, session
        callbacks) and returns the ApiError to raise.
        """
        status = response.status
        payload = response.body

        if status == 401:
            if not descriptor.is_auth_endpoint:
                self.credentials.clear()
                self._invoke("on_unauthenticated")
            return ApiError(
                server_message(payload) or DEFAULT_MESSAGES[ErrorKind.UNAUTHORIZED],
                status,
                ErrorKind.UNAUTHORIZED,
                payload,
            )

        if status == 400:
            return ApiError(
                server_message(payload) or DEFAULT_MESSAGES[ErrorKind.VALIDATION_ERROR],
                status,
                ErrorKind.VALIDATION_ERROR,
                payload,
            )

        if status == 403:
            self._invoke("on_forbidden")
            return ApiError(DEFAULT_MESSAGES[ErrorKind.FORBIDDEN], status, ErrorKind.FORBIDDEN, payload)

        if status == 404:
            return ApiError(DEFAULT_MESSAGES[ErrorKind.NOT_FOUND], status, ErrorKind.NOT_FOUND, payload)

        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self._invoke("on_rate_limited", retry_after)
            return ApiError(
                DEFAULT_MESSAGES[ErrorKind.RATE_LIMIT_EXCEEDED],
                status,
                ErrorKind.RATE_LIMIT_EXCEEDED,
                payload,
            )

        if status >= 500:
            return ApiError(DEFAULT_MESSAGES[ErrorKind.SERVER_ERROR], status, ErrorKind.SERVER_ERROR, payload)

        return ApiError(
            server_message(payload) or f"Request failed with status code {status}",
            status,
            ErrorKind.UNKNOWN_ERROR,
            payload,
        )

    def _invoke(self, name: str, *args: Any) -> None:
        callback = getattr(self.config, name)
        try:
            callback(*args)
        except Exception:
            # The classified error is still the outcome of the call
            logger.error(f"Session callback {name} failed", exc_info=True)
