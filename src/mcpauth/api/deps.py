# Shared FastAPI dependencies for protected resources.
# Created: 2026-10-19

from __future__ import annotations

from fastapi import HTTPException, Request

from mcpauth.oauth2.errors import InsufficientScope, InvalidToken, OAuthError
from mcpauth.oauth2.models import AuthInfo
from mcpauth.oauth2.server import AuthorizationServer, get_oauth_server


def _challenge(exc: OAuthError, resource_metadata_url: str | None) -> HTTPException:
    params = [f'error="{exc.error}"']
    if exc.description:
        params.append(f'error_description="{exc.description}"')
    if resource_metadata_url:
        params.append(f'resource_metadata="{resource_metadata_url}"')
    return HTTPException(
        status_code=exc.status_code,
        detail=exc.to_dict(),
        headers={"WWW-Authenticate": "Bearer " + ", ".join(params)},
    )


def _resolve_server(request: Request, server: AuthorizationServer | None) -> AuthorizationServer:
    if server is not None:
        return server
    return getattr(request.app.state, "oauth_server", None) or get_oauth_server()


def require_access_token(
    *scopes: str,
    resource_metadata_url: str | None = None,
    server: AuthorizationServer | None = None,
):
    """FastAPI dependency that authenticates requests by OAuth bearer token.

    Usage::

        @router.get("/mcp")
        async def mcp(auth: AuthInfo = Depends(require_access_token("mcp:read"))): ...

    The token is checked with ``verify_access_token`` and must carry every
    scope in *scopes*. Failures produce 401 (invalid token) or 403
    (insufficient scope) with a ``WWW-Authenticate`` challenge pointing at
    *resource_metadata_url* when given. The verified ``AuthInfo`` is also
    stored on ``request.state.auth``.

    Tokens are checked against *server*, else the ``oauth_server`` on the
    application state (set by ``create_app``), else the process-wide server.
    """

    async def _check(request: Request) -> AuthInfo:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise _challenge(
                InvalidToken("Missing or malformed bearer token"), resource_metadata_url
            )

        try:
            auth = _resolve_server(request, server).verify_access_token(token)
        except InvalidToken as exc:
            raise _challenge(exc, resource_metadata_url) from exc

        missing = [s for s in scopes if s not in auth.scopes]
        if missing:
            raise _challenge(
                InsufficientScope(f"Required scope: {' '.join(missing)}"), resource_metadata_url
            )

        request.state.auth = auth
        return auth

    return _check
