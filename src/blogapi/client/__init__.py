"""
HTTP access layer for the blog site client.

All network calls go through AccessLayer, which attaches credentials,
classifies failures into ApiError and retries server errors.
"""
from blogapi.client.access import (
    AccessLayer,
    AccessLayerConfig,
    RequestDescriptor,
    parse_retry_after,
)
from blogapi.client.errors import ApiError, ErrorKind
from blogapi.client.transport import AiohttpTransport, TransportResponse

__all__ = [
    "AccessLayer",
    "AccessLayerConfig",
    "RequestDescriptor",
    "parse_retry_after",
    "ApiError",
    "ErrorKind",
    "AiohttpTransport",
    "TransportResponse",
]
