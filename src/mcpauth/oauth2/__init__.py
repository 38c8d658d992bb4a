# OAuth2 authorization server core.
# Created: 2026-10-19

from mcpauth.oauth2.errors import (
    ConfigurationError,
    InvalidClient,
    InvalidGrant,
    InvalidScope,
    InvalidToken,
    OAuthError,
    UnsupportedGrantType,
)
from mcpauth.oauth2.models import (
    AuthInfo,
    AuthorizationCode,
    AuthorizationParams,
    OAuthClient,
    OAuthToken,
    TokenKind,
)
from mcpauth.oauth2.server import AuthorizationServer

__all__ = [
    "AuthInfo",
    "AuthorizationCode",
    "AuthorizationParams",
    "AuthorizationServer",
    "ConfigurationError",
    "InvalidClient",
    "InvalidGrant",
    "InvalidScope",
    "InvalidToken",
    "OAuthClient",
    "OAuthError",
    "OAuthToken",
    "TokenKind",
    "UnsupportedGrantType",
]
