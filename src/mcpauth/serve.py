"""Application factory for ``mcpauth serve``.

Builds the metadata documents from settings (validating the issuer URL before
any route exists), mounts the OAuth router at the application root and runs
a periodic sweep of expired codes and tokens for the app's lifetime.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mcpauth.api.oauth2 import build_auth_router
from mcpauth.config import Settings, get_settings
from mcpauth.oauth2.metadata import (
    AUTHORIZATION_SERVER_METADATA_PATH,
    Capabilities,
    OAuthMetadata,
    ProtectedResourceMetadata,
    build_metadata,
    build_protected_resource_metadata,
)
from mcpauth.oauth2.server import AuthorizationServer, set_oauth_server

logger = logging.getLogger(__name__)


async def _purge_loop(server: AuthorizationServer, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.to_thread(server.purge_expired)
        except Exception:
            logger.exception("Expired code/token sweep failed")
            continue
        if removed:
            logger.info("Purged %d expired codes/tokens", removed)


def build_documents(
    settings: Settings, capabilities: Capabilities
) -> tuple[OAuthMetadata, ProtectedResourceMetadata]:
    """Both metadata documents for *settings*; validates the issuer URL."""
    metadata = build_metadata(
        settings.issuer_url,
        base_url=settings.base_url,
        service_documentation_url=settings.service_documentation_url,
        scopes_supported=settings.scopes_supported,
        capabilities=capabilities,
    )
    resource_metadata = build_protected_resource_metadata(
        settings.issuer_url,
        settings.resource_server_url or settings.issuer_url,
        scopes_supported=settings.scopes_supported,
        resource_name=settings.resource_name,
        resource_documentation=settings.service_documentation_url,
    )
    return metadata, resource_metadata


def create_app(
    settings: Settings | None = None,
    server: AuthorizationServer | None = None,
) -> FastAPI:
    """Build the authorization server application.

    Raises ConfigurationError for an invalid issuer URL.
    """
    settings = settings or get_settings()
    server = server or AuthorizationServer.from_settings(settings)

    metadata, resource_metadata = build_documents(settings, server.capabilities)

    # Bearer-token dependencies resolve the server through the singleton
    set_oauth_server(server)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(_purge_loop(server, settings.cleanup_interval))
        logger.info("Authorization server ready (issuer %s)", metadata.issuer)
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    app = FastAPI(
        title="mcpauth",
        description="OAuth 2.0 authorization server for MCP servers.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.oauth_server = server
    app.include_router(build_auth_router(server, metadata, resource_metadata))
    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    dev: bool = False,
) -> None:
    """Start the authorization server under uvicorn."""
    import uvicorn

    settings = get_settings()

    print("\n" + "=" * 50)
    print("MCPAUTH AUTHORIZATION SERVER")
    print("=" * 50)
    print(f"\nIssuer:   {settings.issuer_url}")
    print(f"Metadata: http://{host}:{port}{AUTHORIZATION_SERVER_METADATA_PATH}\n")

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent)
        uvicorn.run(
            "mcpauth.serve:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        app = create_app(settings)
        uvicorn.run(app, host=host, port=port)
