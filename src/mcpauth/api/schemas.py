# OAuth2 request/response schemas.
# Created: 2026-10-19

from __future__ import annotations

from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenRequest(BaseModel):
    """Token endpoint form (authorization_code or refresh_token grant)."""

    grant_type: str
    code: str | None = None
    code_verifier: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


class TokenResponse(BaseModel):
    """OAuth2 token response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: str
    refresh_token: str | None = None


class RevokeRequest(BaseModel):
    """Token revocation request (RFC 7009)."""

    token: str = Field(..., min_length=1)
    token_type_hint: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


class ClientRegistrationRequest(BaseModel):
    """Dynamic client registration metadata (RFC 7591)."""

    model_config = ConfigDict(extra="ignore")

    redirect_uris: list[str] = Field(..., min_length=1)
    client_name: str | None = None
    scope: str | None = None
    grant_types: list[str] | None = None
    token_endpoint_auth_method: Literal["none", "client_secret_post"] = "client_secret_post"

    @field_validator("redirect_uris")
    @classmethod
    def validate_redirect_uris(cls, v: list[str]) -> list[str]:
        for uri in v:
            parts = urlsplit(uri)
            if not parts.scheme or not (parts.netloc or parts.path):
                raise ValueError(f"Redirect URI must be absolute: {uri}")
            if parts.fragment:
                raise ValueError(f"Redirect URI must not have a fragment: {uri}")
        return v
