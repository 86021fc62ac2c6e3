"""
Blog Site Client v1.0

Async client for the blog site API: a single HTTP access layer that attaches
credentials, retries server errors and classifies every failure, plus
account and blog services built on top of it.
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Import key components for easier access
from blogapi.config import get_settings, load_settings, Settings
from blogapi.auth import CredentialStore, AuthError
from blogapi.client import AccessLayer, ApiError, ErrorKind
from blogapi.diagnostics import DiagnosticSink
from blogapi.services import AuthService, BlogService

# Version information tuple (major, minor, patch)
VERSION = tuple(map(int, __version__.split(".")))


# Expose main entry point
def run():
    """Run the blog site command-line client."""
    from blogapi.cli import main
    main()
