# OAuth2 error taxonomy.
# Created: 2026-10-19
#
# Protocol errors carry their RFC 6749 error code and are translated into
# JSON responses by the router. ConfigurationError is fatal and is
# not an OAuthError.

from __future__ import annotations


class ConfigurationError(Exception):
    """Invalid server configuration (e.g. a bad issuer URL)."""


class OAuthError(Exception):
    """Base class for errors reported to OAuth clients."""

    error: str = "server_error"
    status_code: int = 400

    def __init__(self, description: str = ""):
        super().__init__(description or self.error)
        self.description = description

    def to_dict(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class InvalidRequest(OAuthError):
    error = "invalid_request"


class InvalidClient(OAuthError):
    error = "invalid_client"
    status_code = 401


class InvalidGrant(OAuthError):
    error = "invalid_grant"


class InvalidScope(OAuthError):
    error = "invalid_scope"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"


class InvalidToken(OAuthError):
    error = "invalid_token"
    status_code = 401


class InsufficientScope(OAuthError):
    error = "insufficient_scope"
    status_code = 403


class InvalidClientMetadata(OAuthError):
    error = "invalid_client_metadata"


class UnsupportedResponseType(OAuthError):
    error = "unsupported_response_type"


class UnauthorizedClient(OAuthError):
    error = "unauthorized_client"
