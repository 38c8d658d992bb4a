# Authorization server (RFC 8414) and protected resource (RFC 9728) metadata.
# Created: 2026-10-19
#
# Both documents are pure functions of configuration. The issuer URL is
# validated before either is built, so building them at startup fails fast.

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit, urlunsplit

from pydantic import BaseModel

from mcpauth.oauth2.errors import ConfigurationError

AUTHORIZATION_PATH = "/authorize"
TOKEN_PATH = "/token"
REVOCATION_PATH = "/revoke"
REGISTRATION_PATH = "/register"

AUTHORIZATION_SERVER_METADATA_PATH = "/.well-known/oauth-authorization-server"
PROTECTED_RESOURCE_METADATA_PATH = "/.well-known/oauth-protected-resource"

_LOOPBACK_HOSTS = ("localhost", "127.0.0.1")
_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Capabilities:
    """Optional endpoints enabled for this server, fixed at startup."""

    registration: bool = False
    revocation: bool = False


class OAuthMetadata(BaseModel):
    """RFC 8414 authorization server metadata."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    response_types_supported: list[str] = ["code"]
    code_challenge_methods_supported: list[str] = ["S256"]
    token_endpoint_auth_methods_supported: list[str] = ["client_secret_post"]
    grant_types_supported: list[str] = ["authorization_code", "refresh_token"]
    scopes_supported: list[str] | None = None
    revocation_endpoint: str | None = None
    revocation_endpoint_auth_methods_supported: list[str] | None = None
    registration_endpoint: str | None = None
    service_documentation: str | None = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


class ProtectedResourceMetadata(BaseModel):
    """RFC 9728 protected resource metadata."""

    resource: str
    authorization_servers: list[str]
    scopes_supported: list[str] | None = None
    resource_name: str | None = None
    resource_documentation: str | None = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


def validate_issuer_url(url: str) -> None:
    """Raise ConfigurationError unless *url* is a usable issuer identifier.

    HTTPS is required, except for localhost/127.0.0.1 which are allowed for
    testing. Fragments and query strings are rejected.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ConfigurationError(f"Issuer URL must be absolute: {url}")
    try:
        parts.port
    except ValueError as exc:
        raise ConfigurationError(f"Issuer URL has an invalid port: {url}") from exc
    if parts.scheme != "https" and parts.hostname not in _LOOPBACK_HOSTS:
        raise ConfigurationError("Issuer URL must be HTTPS")
    if parts.fragment:
        raise ConfigurationError(f"Issuer URL must not have a fragment: {url}")
    if parts.query:
        raise ConfigurationError(f"Issuer URL must not have a query string: {url}")


def normalize_url(url: str) -> str:
    """Serialize *url* the way URL parsers do.

    An empty path becomes ``/``, the scheme and host are lowercased (userinfo
    is kept as is) and the scheme's default port is dropped.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    userinfo, _, _ = parts.netloc.rpartition("@")
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{userinfo}@{host}" if userinfo else host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))


def build_metadata(
    issuer_url: str,
    *,
    base_url: str | None = None,
    service_documentation_url: str | None = None,
    scopes_supported: list[str] | None = None,
    capabilities: Capabilities = Capabilities(),
) -> OAuthMetadata:
    """Authorization server metadata for *issuer_url*.

    Endpoint paths are absolute, so they resolve against the origin of
    *base_url* (or the issuer when no base URL is given).
    """
    validate_issuer_url(issuer_url)
    root = normalize_url(base_url or issuer_url)

    metadata = OAuthMetadata(
        issuer=normalize_url(issuer_url),
        authorization_endpoint=urljoin(root, AUTHORIZATION_PATH),
        token_endpoint=urljoin(root, TOKEN_PATH),
        scopes_supported=scopes_supported,
        service_documentation=(
            normalize_url(service_documentation_url) if service_documentation_url else None
        ),
    )
    if capabilities.revocation:
        metadata.revocation_endpoint = urljoin(root, REVOCATION_PATH)
        metadata.revocation_endpoint_auth_methods_supported = ["client_secret_post"]
    if capabilities.registration:
        metadata.registration_endpoint = urljoin(root, REGISTRATION_PATH)
    return metadata


def build_protected_resource_metadata(
    issuer_url: str,
    resource_url: str,
    *,
    scopes_supported: list[str] | None = None,
    resource_name: str | None = None,
    resource_documentation: str | None = None,
) -> ProtectedResourceMetadata:
    validate_issuer_url(issuer_url)
    return ProtectedResourceMetadata(
        resource=normalize_url(resource_url),
        authorization_servers=[normalize_url(issuer_url)],
        scopes_supported=scopes_supported,
        resource_name=resource_name,
        resource_documentation=(
            normalize_url(resource_documentation) if resource_documentation else None
        ),
    )


def protected_resource_metadata_url(server_url: str) -> str:
    """Metadata URL for a resource server: same origin, well-known path.

    ``https://api.example.com/mcp`` -> ``https://api.example.com/.well-known/oauth-protected-resource``
    """
    return urljoin(normalize_url(server_url), PROTECTED_RESOURCE_METADATA_PATH)
