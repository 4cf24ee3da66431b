"""
Error types for Preset Gateway.

Every error raised inside a request handler carries the HTTP status it
maps to; a single exception handler in the server renders them as
``{"error": ..., "message": ...}``.
"""

from typing import Dict, Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""

    status_code = 500
    title = "Gateway Error"

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}

    def to_dict(self) -> dict:
        return {"error": self.title, "message": self.message}


class ConfigurationError(GatewayError):
    """Invalid or missing configuration value."""

    title = "Configuration Error"


class AuthenticationError(GatewayError):
    """No client key was presented."""

    status_code = 401
    title = "Unauthorized"


class AuthorizationError(GatewayError):
    """A client key was presented but is unknown or disabled."""

    status_code = 403
    title = "Forbidden"


class AdminAuthError(GatewayError):
    """Missing or wrong admin Basic credentials."""

    status_code = 401
    title = "Authentication required"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, headers={"WWW-Authenticate": 'Basic realm="Admin"'})


class ValidationError(GatewayError):
    status_code = 400
    title = "Bad Request"


class NotFoundError(GatewayError):
    status_code = 404
    title = "Not Found"


class UpstreamError(GatewayError):
    """The upstream service could not be reached."""

    status_code = 502
    title = "Proxy Error"
