# OAuth2 Authorization Server with PKCE support.
# Created: 2026-10-19
#
# Owns the lifecycle of authorization codes and tokens: one-time codes bound
# to a client and a PKCE challenge, code and refresh-token exchange, access
# token verification and revocation. Storage is delegated to the store
# contracts in mcpauth.oauth2.storage.

from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from mcpauth.oauth2.errors import (
    ConfigurationError,
    InvalidClient,
    InvalidClientMetadata,
    InvalidGrant,
    InvalidRequest,
    InvalidScope,
    InvalidToken,
    UnsupportedGrantType,
)
from mcpauth.oauth2.metadata import Capabilities
from mcpauth.oauth2.models import (
    AuthInfo,
    AuthorizationCode,
    AuthorizationParams,
    OAuthClient,
    OAuthToken,
    TokenKind,
)
from mcpauth.oauth2.pkce import verify_code_verifier
from mcpauth.oauth2.storage import (
    ClientRegistrar,
    ClientStore,
    CodeStore,
    InMemoryClientStore,
    InMemoryCodeStore,
    InMemoryTokenStore,
    TokenStore,
)
from mcpauth.security.audit import AuditLogger, fingerprint

if TYPE_CHECKING:
    from mcpauth.config import Settings

logger = logging.getLogger(__name__)

# Token lifetimes
ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=30)
CODE_TTL = timedelta(minutes=10)

SUPPORTED_GRANT_TYPES = ("authorization_code", "refresh_token")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def construct_redirect_uri(redirect_uri: str, **params: str | None) -> str:
    """Append *params* to the query of *redirect_uri*, keeping existing ones."""
    parts = urlsplit(redirect_uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((k, v) for k, v in params.items() if v is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationServer:
    """OAuth2 authorization server with PKCE."""

    def __init__(
        self,
        clients: ClientStore | None = None,
        codes: CodeStore | None = None,
        tokens: TokenStore | None = None,
        *,
        access_token_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_token_ttl: timedelta | None = REFRESH_TOKEN_TTL,
        code_ttl: timedelta = CODE_TTL,
        issue_refresh_tokens: bool = True,
        require_code_verifier: bool = True,
        enable_registration: bool = True,
        enable_revocation: bool = True,
        scopes_supported: list[str] | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.clients = clients if clients is not None else InMemoryClientStore()
        self.codes = codes if codes is not None else InMemoryCodeStore()
        self.tokens = tokens if tokens is not None else InMemoryTokenStore()
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.code_ttl = code_ttl
        self.issue_refresh_tokens = issue_refresh_tokens
        self.require_code_verifier = require_code_verifier
        self.scopes_supported = scopes_supported
        self.audit = audit
        self._clock = clock

        if enable_registration and not isinstance(self.clients, ClientRegistrar):
            raise ConfigurationError(
                f"Client registration enabled but {type(self.clients).__name__} "
                "cannot register clients"
            )
        self.capabilities = Capabilities(
            registration=enable_registration,
            revocation=enable_revocation,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthorizationServer:
        audit = AuditLogger(settings.audit_log_path) if settings.audit_log_path else None
        return cls(
            access_token_ttl=timedelta(seconds=settings.access_token_ttl),
            refresh_token_ttl=(
                timedelta(seconds=settings.refresh_token_ttl)
                if settings.refresh_token_ttl is not None
                else None
            ),
            code_ttl=timedelta(seconds=settings.code_ttl),
            issue_refresh_tokens=settings.issue_refresh_tokens,
            require_code_verifier=settings.require_code_verifier,
            enable_registration=settings.registration_enabled,
            enable_revocation=settings.revocation_enabled,
            scopes_supported=settings.scopes_supported,
            audit=audit,
        )

    # -- authorization ------------------------------------------------------

    def authorize(self, client: OAuthClient, params: AuthorizationParams) -> str:
        """Issue an authorization code and return the redirect target.

        The redirect URI and scopes are expected to have been validated
        against *client* by the caller.
        """
        code = secrets.token_urlsafe(32)
        self.codes.save_code(
            AuthorizationCode(
                code=code,
                client_id=client.client_id,
                code_challenge=params.code_challenge,
                scopes=list(params.scopes),
                redirect_uri=params.redirect_uri,
                expires_at=self._clock() + self.code_ttl,
                redirect_uri_provided_explicitly=params.redirect_uri_provided_explicitly,
            )
        )
        logger.info("Authorization code issued for client %s", client.client_id)
        self._audit("code_issued", client.client_id, scope=" ".join(params.scopes))
        return construct_redirect_uri(params.redirect_uri, code=code, state=params.state)

    def exchange_authorization_code(
        self,
        client: OAuthClient,
        code: str,
        code_verifier: str | None = None,
        redirect_uri: str | None = None,
    ) -> dict:
        """Exchange an authorization code (+ PKCE verifier) for tokens.

        The code is consumed by the first exchange attempt from its owning
        client, whether or not that attempt succeeds.
        """
        record = self.codes.take_code(code, client.client_id)
        if record is None:
            self._reject(client, "authorization_code", "unknown code")
            raise InvalidGrant("Authorization code is invalid or was not issued to this client")

        now = self._clock()
        if record.is_expired(now):
            self._reject(client, "authorization_code", "expired code")
            raise InvalidGrant("Authorization code has expired")

        if redirect_uri is not None or record.redirect_uri_provided_explicitly:
            if redirect_uri != record.redirect_uri:
                self._reject(client, "authorization_code", "redirect_uri mismatch")
                raise InvalidGrant(
                    "redirect_uri does not match the one used in the authorization request"
                )

        if code_verifier is None:
            if self.require_code_verifier:
                self._reject(client, "authorization_code", "missing code_verifier")
                raise InvalidGrant("code_verifier is required")
        elif not verify_code_verifier(code_verifier, record.code_challenge):
            self._reject(client, "authorization_code", "code_verifier mismatch")
            raise InvalidGrant("code_verifier does not match the challenge")

        result = self._issue_tokens(client.client_id, record.scopes, now)
        logger.info("Access token issued for client %s", client.client_id)
        self._audit(
            "token_issued",
            client.client_id,
            grant_type="authorization_code",
            token=fingerprint(result["access_token"]),
            scope=result["scope"],
        )
        return result

    def exchange_refresh_token(
        self,
        client: OAuthClient,
        refresh_token: str,
        scopes: list[str] | None = None,
    ) -> dict:
        """Rotate a refresh token: new access + refresh token, old pair revoked.

        *scopes* may narrow, never widen, the original grant. The new refresh
        token keeps the original grant's scopes.
        """
        if not self.issue_refresh_tokens:
            raise UnsupportedGrantType("Refresh tokens are not supported by this server")

        now = self._clock()
        record = self.tokens.get_token(refresh_token)
        if (
            record is None
            or record.kind is not TokenKind.REFRESH
            or record.client_id != client.client_id
        ):
            self._reject(client, "refresh_token", "unknown refresh token")
            raise InvalidGrant("Refresh token is invalid or was not issued to this client")

        if record.is_expired(now):
            self.tokens.delete_token(refresh_token)
            self._reject(client, "refresh_token", "expired refresh token")
            raise InvalidGrant("Refresh token has expired")

        requested = list(dict.fromkeys(scopes)) if scopes else list(record.scopes)
        for scope in requested:
            if scope not in record.scopes:
                raise InvalidScope(f"Cannot request scope `{scope}` not provided by refresh token")

        consumed = self.tokens.take_token(refresh_token, client.client_id)
        if consumed is None:
            # Lost a race against a concurrent refresh or revocation
            self._reject(client, "refresh_token", "refresh token already used")
            raise InvalidGrant("Refresh token has already been used")
        if consumed.paired_token:
            self.tokens.delete_token(consumed.paired_token)

        result = self._issue_tokens(
            client.client_id, requested, now, refresh_scopes=consumed.scopes
        )
        logger.info("Refresh token rotated for client %s", client.client_id)
        self._audit(
            "token_refreshed",
            client.client_id,
            token=fingerprint(result["access_token"]),
            scope=result["scope"],
        )
        return result

    # -- verification & revocation ------------------------------------------

    def verify_access_token(self, token: str) -> AuthInfo:
        """Return the token's AuthInfo; raises InvalidToken otherwise.

        Read-only: expired tokens are left for the purge sweep.
        """
        record = self.tokens.get_token(token)
        if record is None or record.kind is not TokenKind.ACCESS:
            raise InvalidToken("Invalid or expired token")
        if record.is_expired(self._clock()):
            raise InvalidToken("Invalid or expired token")
        return AuthInfo(
            token=record.token,
            client_id=record.client_id,
            scopes=list(record.scopes),
            expires_at=record.expires_at,
        )

    def revoke_token(self, client: OAuthClient, token: str) -> None:
        """Revoke an access or refresh token (RFC 7009).

        Unknown tokens are ignored. Revoking a refresh token also revokes the
        access token issued with it.
        """
        record = self.tokens.get_token(token)
        if record is None:
            logger.debug("Revocation of unknown token ignored (client %s)", client.client_id)
            return
        if record.client_id != client.client_id:
            raise InvalidClient("Token was not issued to this client")

        self.tokens.delete_token(token)
        if record.kind is TokenKind.REFRESH and record.paired_token:
            self.tokens.delete_token(record.paired_token)

        logger.info("%s token revoked for client %s", record.kind.value.capitalize(), client.client_id)
        self._audit("token_revoked", client.client_id, kind=record.kind.value, token=fingerprint(token))

    # -- clients ------------------------------------------------------------

    def register_client(
        self,
        *,
        redirect_uris: list[str],
        client_name: str | None = None,
        scope: str | None = None,
        grant_types: list[str] | None = None,
        token_endpoint_auth_method: str = "client_secret_post",
    ) -> OAuthClient:
        """Dynamic client registration (RFC 7591)."""
        if not self.capabilities.registration:
            raise InvalidRequest("Dynamic client registration is not enabled")

        if scope is not None and self.scopes_supported is not None:
            unsupported = set(scope.split()) - set(self.scopes_supported)
            if unsupported:
                raise InvalidClientMetadata(
                    f"Requested scopes are not valid: {', '.join(sorted(unsupported))}"
                )
        elif scope is None and self.scopes_supported is not None:
            scope = " ".join(self.scopes_supported)

        grant_types = list(grant_types or SUPPORTED_GRANT_TYPES)
        if "authorization_code" not in grant_types or not set(grant_types) <= set(
            SUPPORTED_GRANT_TYPES
        ):
            raise InvalidClientMetadata(
                "grant_types must include authorization_code and may only add refresh_token"
            )

        has_secret = token_endpoint_auth_method != "none"
        client = OAuthClient(
            client_id=str(uuid.uuid4()),
            redirect_uris=list(redirect_uris),
            client_secret=secrets.token_hex(32) if has_secret else None,
            client_name=client_name,
            scope=scope,
            grant_types=grant_types,
            token_endpoint_auth_method=token_endpoint_auth_method,
            client_id_issued_at=int(self._clock().timestamp()),
            client_secret_expires_at=0 if has_secret else None,
        )
        registered = self.clients.register_client(client)
        logger.info("Registered client %s (%s)", registered.client_id, client_name or "unnamed")
        self._audit("client_registered", registered.client_id, client_name=client_name)
        return registered

    def authenticate_client(self, client_id: str | None, client_secret: str | None) -> OAuthClient:
        """Authenticate a client by ``client_secret_post`` credentials."""
        if not client_id:
            raise InvalidClient("client_id is required")
        client = self.clients.get_client(client_id)
        if client is None:
            raise InvalidClient("Invalid client_id")

        if client.client_secret:
            if not client_secret:
                raise InvalidClient("Client secret is required")
            if not hmac.compare_digest(client.client_secret.encode(), client_secret.encode()):
                raise InvalidClient("Invalid client_secret")
            expires_at = client.client_secret_expires_at
            if expires_at and expires_at < int(self._clock().timestamp()):
                raise InvalidClient("Client secret has expired")
        return client

    def purge_expired(self) -> int:
        """Drop expired codes and tokens. Returns the number removed."""
        now = self._clock()
        return self.codes.purge_expired(now) + self.tokens.purge_expired(now)

    # -- internals ----------------------------------------------------------

    def _issue_tokens(
        self,
        client_id: str,
        scopes: list[str],
        now: datetime,
        refresh_scopes: list[str] | None = None,
    ) -> dict:
        access_value = secrets.token_urlsafe(32)
        refresh_value = secrets.token_urlsafe(32) if self.issue_refresh_tokens else None

        self.tokens.save_token(
            OAuthToken(
                token=access_value,
                client_id=client_id,
                scopes=list(scopes),
                kind=TokenKind.ACCESS,
                expires_at=now + self.access_token_ttl,
                paired_token=refresh_value,
                created_at=now,
            )
        )
        result = {
            "access_token": access_value,
            "token_type": "Bearer",
            "expires_in": int(self.access_token_ttl.total_seconds()),
            "scope": " ".join(scopes),
        }

        if refresh_value is not None:
            self.tokens.save_token(
                OAuthToken(
                    token=refresh_value,
                    client_id=client_id,
                    scopes=list(refresh_scopes if refresh_scopes is not None else scopes),
                    kind=TokenKind.REFRESH,
                    expires_at=(
                        now + self.refresh_token_ttl if self.refresh_token_ttl is not None else None
                    ),
                    paired_token=access_value,
                    created_at=now,
                )
            )
            result["refresh_token"] = refresh_value
        return result

    def _reject(self, client: OAuthClient, grant_type: str, reason: str) -> None:
        logger.warning("Rejected %s grant for client %s: %s", grant_type, client.client_id, reason)
        self._audit("grant_rejected", client.client_id, status="rejected", grant_type=grant_type, reason=reason)

    def _audit(self, action: str, client_id: str, status: str = "success", **context) -> None:
        if self.audit is not None:
            self.audit.log_oauth_event(action, client_id, status=status, **context)


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        from mcpauth.config import get_settings

        _server = AuthorizationServer.from_settings(get_settings())
    return _server


def set_oauth_server(server: AuthorizationServer) -> None:
    global _server
    _server = server


def reset_oauth_server() -> None:
    global _server
    _server = None
