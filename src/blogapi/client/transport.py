"""
HTTP transport for the access layer.

A transport performs exactly one HTTP attempt and reports what came back. It
does not retry or classify anything; timeouts surface as
``asyncio.TimeoutError`` and connection failures as ``aiohttp.ClientError``.
"""
import asyncio
import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp
from multidict import CIMultiDict

# Configure logger
logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Status, headers and decoded body of one HTTP attempt."""
    status: int
    headers: Mapping[str, str] = field(default_factory=CIMultiDict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def decode_body(text: str, content_type: Optional[str] = None) -> Any:
    """
    Decode a response body.

    JSON is parsed when the content type says so or when the text looks like
    JSON; anything else is returned as text. An empty body decodes to None.
    """
    if not text:
        return None
    looks_like_json = text.lstrip()[:1] in ("{", "[")
    if (content_type and "json" in content_type) or looks_like_json:
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Response body is not valid JSON, returning text")
    return text


class AiohttpTransport:
    """Sends requests with a shared aiohttp session."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Base URL every request path is joined to
            timeout_seconds: Total timeout for a single attempt
            default_headers: Headers sent with every request
        """
        if not base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got: {base_url!r}")

        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **(default_headers or {}),
        }
        self._session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("Transport is closed, cannot create new session")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.default_headers)
        return self._session

    def url_for(self, path: str) -> str:
        """Absolute URLs pass through; relative paths are joined to the base URL."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> TransportResponse:
        """
        Perform one HTTP attempt.

        Raises:
            asyncio.TimeoutError: If the attempt exceeds the timeout
            aiohttp.ClientError: If no response was received
        """
        session = await self._ensure_session()
        url = self.url_for(path)

        async with session.request(
            method,
            url,
            params=_clean_params(params),
            json=body,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as response:
            raw = await response.read()
            text = raw.decode(_encoding_of(response), errors="replace")
            return TransportResponse(
                status=response.status,
                headers=CIMultiDict(response.headers),
                body=decode_body(text, response.content_type),
            )

    async def close(self) -> None:
        self._closed = True
        if self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None


def _encoding_of(response: aiohttp.ClientResponse) -> str:
    """Declared charset of a response, or utf-8 when missing or unknown."""
    charset = response.charset
    if not isinstance(charset, str) or not charset:
        return "utf-8"
    try:
        return codecs.lookup(charset).name
    except LookupError:
        logger.debug(f"Unknown response charset {charset!r}, decoding as utf-8")
        return "utf-8"


def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """Drop unset query params and stringify the rest (aiohttp rejects None/bool)."""
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = str(value)
    return cleaned or None
