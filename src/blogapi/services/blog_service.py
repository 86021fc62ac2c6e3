"""
Blog content service for the blog site client.
"""
import logging
from typing import Any, List, Optional
from urllib.parse import quote

from blogapi.client.access import AccessLayer
from blogapi.client.errors import ApiError
from blogapi.diagnostics import DiagnosticSink
from blogapi.services.models import Blog

# Configure logger
logger = logging.getLogger(__name__)

BLOGS_PATH = "/api/v1/blogs"
TAGS_PATH = "/api/v1/blogs/tags/all"


def _data(payload: Any) -> Any:
    """The ``data`` member of a ``{success, data}`` envelope."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    raise ValueError("Response has no data member")


class BlogService:
    """Read-only access to blog posts and tags."""

    def __init__(self, access: AccessLayer, diagnostics: Optional[DiagnosticSink] = None):
        self.access = access
        self.diagnostics = diagnostics or access.diagnostics

    async def get_all_blogs(
        self,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> List[Blog]:
        """
        Fetch blogs, optionally filtered.

        Args:
            tag: Only posts carrying this tag
            author: Only posts by this author
            search: Free-text search
            page: 1-based page number
            limit: Page size
            sort: Field to sort by
            order: "asc" or "desc"

        Raises:
            ApiError: Classified error from the access layer, or FETCH_BLOGS_ERROR
        """
        if order is not None and order not in ("asc", "desc"):
            raise ValueError(f"order must be 'asc' or 'desc', got: {order!r}")

        params = {
            "tag": tag,
            "author": author,
            "search": search,
            "page": page,
            "limit": limit,
            "sort": sort,
            "order": order,
        }
        params = {key: value for key, value in params.items() if value is not None}

        try:
            payload = await self.access.get(BLOGS_PATH, params=params or None)
            return [Blog.model_validate(item) for item in _data(payload)]
        except Exception as e:
            self.diagnostics.error("Error fetching blogs", e)
            if isinstance(e, ApiError):
                raise
            raise ApiError("Failed to fetch blogs", kind="FETCH_BLOGS_ERROR") from e

    async def get_blog_by_id(self, blog_id: str) -> Blog:
        """
        Fetch a single blog by ID.

        Raises:
            ApiError: NOT_FOUND (unchanged from the access layer) when the post
                does not exist, other classified errors, or BLOG_NOT_FOUND
        """
        return await self._get_blog(
            f"{BLOGS_PATH}/{quote(blog_id, safe='')}", "Error fetching blog by ID", id=blog_id
        )

    async def get_blog_by_slug(self, slug: str) -> Blog:
        """
        Fetch a single blog by slug.

        Raises:
            ApiError: Same as get_blog_by_id
        """
        return await self._get_blog(
            f"{BLOGS_PATH}/slug/{quote(slug, safe='')}", "Error fetching blog by slug", slug=slug
        )

    async def _get_blog(self, path: str, failure_message: str, **lookup: str) -> Blog:
        try:
            payload = await self.access.get(path)
            return Blog.model_validate(_data(payload))
        except Exception as e:
            self.diagnostics.error(failure_message, e, **lookup)
            if isinstance(e, ApiError):
                raise
            raise ApiError("Blog not found", 404, "BLOG_NOT_FOUND") from e

    async def get_all_tags(self) -> List[str]:
        """
        Fetch every tag in use.

        Raises:
            ApiError: Classified error from the access layer, or FETCH_TAGS_ERROR
        """
        try:
            payload = await self.access.get(TAGS_PATH)
            return [str(tag) for tag in _data(payload)]
        except Exception as e:
            self.diagnostics.error("Error fetching tags", e)
            if isinstance(e, ApiError):
                raise
            raise ApiError("Failed to fetch tags", kind="FETCH_TAGS_ERROR") from e
