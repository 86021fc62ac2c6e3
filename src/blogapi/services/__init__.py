"""
Resource services for the blog site client.

Typed wrappers that turn account and content operations into access layer
calls.
"""
from blogapi.services.auth_service import AuthService
from blogapi.services.blog_service import BlogService
from blogapi.services.models import AuthResponse, Blog, TokenData, User

__all__ = [
    "AuthService",
    "BlogService",
    "AuthResponse",
    "Blog",
    "TokenData",
    "User",
]
