# OAuth2 data models.
# Created: 2026-10-19

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from mcpauth.oauth2.errors import InvalidRequest, InvalidScope


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class OAuthClient:
    """Registered OAuth2 client."""

    client_id: str
    redirect_uris: list[str]
    client_secret: str | None = None
    client_name: str | None = None
    scope: str | None = None  # space-separated; None allows any scope
    grant_types: list[str] = field(
        default_factory=lambda: ["authorization_code", "refresh_token"]
    )
    token_endpoint_auth_method: str = "client_secret_post"
    client_id_issued_at: int | None = None
    client_secret_expires_at: int | None = None  # 0 or None = never

    def validate_redirect_uri(self, redirect_uri: str | None) -> str:
        """Return the redirect URI to use for this authorization request.

        An explicit URI must be registered. Without one, the client must have
        exactly one registered URI.
        """
        if redirect_uri is not None:
            if redirect_uri not in self.redirect_uris:
                raise InvalidRequest(f"Redirect URI '{redirect_uri}' not registered for client")
            return redirect_uri
        if len(self.redirect_uris) == 1:
            return self.redirect_uris[0]
        raise InvalidRequest("redirect_uri must be specified when client has multiple registered URIs")

    def validate_scope(self, requested: str | None) -> list[str]:
        """Split a scope string and check it against the client's allowed scopes."""
        if not requested:
            return []
        scopes = _split_scopes(requested)
        if self.scope is not None:
            allowed = set(self.scope.split())
            for scope in scopes:
                if scope not in allowed:
                    raise InvalidScope(f"Client was not registered with scope {scope}")
        return scopes

    def to_dict(self) -> dict:
        """RFC 7591 client information response (absent fields omitted)."""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "client_id_issued_at": self.client_id_issued_at,
            "client_secret_expires_at": self.client_secret_expires_at,
            "client_name": self.client_name,
            "redirect_uris": list(self.redirect_uris),
            "scope": self.scope,
            "grant_types": list(self.grant_types),
            "token_endpoint_auth_method": self.token_endpoint_auth_method,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class AuthorizationParams:
    """Validated parameters of an authorization request."""

    redirect_uri: str
    code_challenge: str
    scopes: list[str] = field(default_factory=list)
    state: str | None = None
    redirect_uri_provided_explicitly: bool = False


@dataclass(frozen=True)
class AuthorizationCode:
    """One-time authorization code bound to a client and a PKCE challenge."""

    code: str
    client_id: str
    code_challenge: str
    scopes: list[str]
    redirect_uri: str
    expires_at: datetime
    redirect_uri_provided_explicitly: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class OAuthToken:
    """Opaque access or refresh token record."""

    token: str
    client_id: str
    scopes: list[str]
    kind: TokenKind
    expires_at: datetime | None = None  # None = never expires
    paired_token: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class AuthInfo:
    """Result of a successful access token verification."""

    token: str
    client_id: str
    scopes: list[str]
    expires_at: datetime | None


def _split_scopes(scope: str) -> list[str]:
    # Order-preserving de-duplication
    return list(dict.fromkeys(scope.split()))
