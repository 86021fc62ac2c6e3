"""
Custom exceptions for the authentication module.

This module defines exceptions that can be raised while persisting,
reading or clearing stored credentials.
"""


class AuthError(Exception):
    """Base exception class for authentication errors."""

    def __init__(self, message: str = "Authentication error occurred"):
        self.message = message
        super().__init__(self.message)


class CredentialStorageError(AuthError):
    """Raised when there's an error reading or writing the credential backend."""

    def __init__(self, message: str = "Credential storage error", original_error=None):
        super().__init__(message)
        self.original_error = original_error


class InvalidCredentialError(AuthError):
    """Raised when token data cannot be turned into a credential record."""

    def __init__(self, message: str = "Invalid credential data", original_error=None):
        super().__init__(message)
        self.original_error = original_error
