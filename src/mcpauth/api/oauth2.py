# OAuth2 router: authorize, token, revoke, register, well-known metadata.
# Created: 2026-10-19
#
# Thin HTTP layer over AuthorizationServer. Only endpoints enabled in the
# server's capabilities are mounted.

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from mcpauth.api.schemas import (
    ClientRegistrationRequest,
    RevokeRequest,
    TokenRequest,
    TokenResponse,
)
from mcpauth.oauth2.errors import (
    InvalidClient,
    InvalidClientMetadata,
    InvalidRequest,
    InvalidScope,
    OAuthError,
    UnauthorizedClient,
    UnsupportedGrantType,
    UnsupportedResponseType,
)
from mcpauth.oauth2.metadata import (
    AUTHORIZATION_PATH,
    AUTHORIZATION_SERVER_METADATA_PATH,
    PROTECTED_RESOURCE_METADATA_PATH,
    REGISTRATION_PATH,
    REVOCATION_PATH,
    TOKEN_PATH,
    OAuthMetadata,
    ProtectedResourceMetadata,
)
from mcpauth.oauth2.models import AuthorizationParams
from mcpauth.oauth2.pkce import S256
from mcpauth.oauth2.server import (
    SUPPORTED_GRANT_TYPES,
    AuthorizationServer,
    construct_redirect_uri,
)

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _error_response(exc: OAuthError, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or exc.status_code,
        content=exc.to_dict(),
        headers=_NO_STORE,
    )


def _redirect_error(redirect_uri: str, exc: OAuthError, state: str | None) -> RedirectResponse:
    target = construct_redirect_uri(
        redirect_uri,
        error=exc.error,
        error_description=exc.description or None,
        state=state,
    )
    return RedirectResponse(target, status_code=302, headers={"Cache-Control": "no-store"})


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    return f"{loc}: {first['msg']}" if loc else first["msg"]


def _authorize(server: AuthorizationServer, params: Mapping[str, str]):
    client_id = params.get("client_id")
    if not client_id:
        return _error_response(InvalidRequest("client_id is required"))
    client = server.clients.get_client(client_id)
    if client is None:
        # Without a trusted redirect URI errors go back to the user agent
        return _error_response(InvalidClient(f"Client ID '{client_id}' not found"), 400)

    requested_uri = params.get("redirect_uri")
    try:
        redirect_uri = client.validate_redirect_uri(requested_uri)
    except InvalidRequest as exc:
        return _error_response(exc)

    state = params.get("state")
    if params.get("response_type") != "code":
        return _redirect_error(
            redirect_uri,
            UnsupportedResponseType("response_type must be 'code'"),
            state,
        )

    code_challenge = params.get("code_challenge")
    if not code_challenge:
        return _redirect_error(redirect_uri, InvalidRequest("code_challenge is required"), state)
    if params.get("code_challenge_method", S256) != S256:
        return _redirect_error(
            redirect_uri, InvalidRequest("code_challenge_method must be S256"), state
        )

    try:
        scopes = client.validate_scope(params.get("scope"))
    except InvalidScope as exc:
        return _redirect_error(redirect_uri, exc, state)

    target = server.authorize(
        client,
        AuthorizationParams(
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            scopes=scopes,
            state=state,
            redirect_uri_provided_explicitly=requested_uri is not None,
        ),
    )
    return RedirectResponse(target, status_code=302, headers={"Cache-Control": "no-store"})


def build_protected_resource_router(resource_metadata: ProtectedResourceMetadata) -> APIRouter:
    """Router serving only the protected resource metadata document."""
    router = APIRouter(tags=["OAuth2"])
    document = resource_metadata.to_dict()

    @router.get(PROTECTED_RESOURCE_METADATA_PATH)
    async def protected_resource_metadata():
        return JSONResponse(document)

    return router


def build_auth_router(
    server: AuthorizationServer,
    metadata: OAuthMetadata,
    resource_metadata: ProtectedResourceMetadata,
) -> APIRouter:
    """Build the authorization server router.

    Must be mounted at the application root: the endpoint paths are the
    ones advertised in *metadata*. ``/register`` and ``/revoke`` only exist
    when the matching capability is enabled on *server*.
    """
    router = APIRouter(tags=["OAuth2"])
    document = metadata.to_dict()

    @router.api_route(AUTHORIZATION_PATH, methods=["GET", "POST"])
    async def authorize(request: Request):
        """Issue an authorization code and redirect back to the client."""
        if request.method == "POST":
            params = {k: str(v) for k, v in (await request.form()).items()}
        else:
            params = dict(request.query_params)
        return _authorize(server, params)

    @router.post(TOKEN_PATH)
    async def token(request: Request):
        """Exchange an authorization code or refresh token for tokens."""
        form = await request.form()
        try:
            body = TokenRequest.model_validate({k: str(v) for k, v in form.items()})
        except ValidationError as exc:
            return _error_response(InvalidRequest(_describe(exc)))

        try:
            if body.grant_type not in SUPPORTED_GRANT_TYPES:
                raise UnsupportedGrantType(f"Unsupported grant_type: {body.grant_type}")
            client = server.authenticate_client(body.client_id, body.client_secret)
            if body.grant_type not in client.grant_types:
                raise UnauthorizedClient(
                    f"Client is not allowed to use grant_type {body.grant_type}"
                )

            if body.grant_type == "authorization_code":
                if not body.code:
                    raise InvalidRequest("code is required")
                result = server.exchange_authorization_code(
                    client, body.code, body.code_verifier, body.redirect_uri
                )
            else:
                if not body.refresh_token:
                    raise InvalidRequest("refresh_token is required")
                scopes = body.scope.split() if body.scope else None
                result = server.exchange_refresh_token(client, body.refresh_token, scopes)
        except OAuthError as exc:
            logger.info("Token request rejected: %s", exc.error)
            return _error_response(exc)

        return JSONResponse(
            TokenResponse(**result).model_dump(exclude_none=True), headers=_NO_STORE
        )

    @router.get(AUTHORIZATION_SERVER_METADATA_PATH)
    async def authorization_server_metadata():
        return JSONResponse(document)

    if server.capabilities.revocation:

        @router.post(REVOCATION_PATH)
        async def revoke(request: Request):
            """Revoke an access or refresh token."""
            form = await request.form()
            try:
                body = RevokeRequest.model_validate({k: str(v) for k, v in form.items()})
            except ValidationError as exc:
                return _error_response(InvalidRequest(_describe(exc)))
            try:
                client = server.authenticate_client(body.client_id, body.client_secret)
                server.revoke_token(client, body.token)
            except OAuthError as exc:
                return _error_response(exc)
            return JSONResponse({}, headers=_NO_STORE)

    if server.capabilities.registration:

        @router.post(REGISTRATION_PATH)
        async def register(request: Request):
            """Dynamic client registration."""
            try:
                payload = await request.json()
            except ValueError:
                return _error_response(InvalidClientMetadata("Request body must be JSON"))
            try:
                body = ClientRegistrationRequest.model_validate(payload)
            except ValidationError as exc:
                return _error_response(InvalidClientMetadata(_describe(exc)))
            try:
                client = server.register_client(
                    redirect_uris=body.redirect_uris,
                    client_name=body.client_name,
                    scope=body.scope,
                    grant_types=body.grant_types,
                    token_endpoint_auth_method=body.token_endpoint_auth_method,
                )
            except OAuthError as exc:
                return _error_response(exc)
            return JSONResponse(client.to_dict(), status_code=201, headers=_NO_STORE)

    router.include_router(build_protected_resource_router(resource_metadata))
    return router
