"""mcpauth entry point.

Commands:
  serve      Run the authorization server (uvicorn)
  metadata   Print the authorization server and protected resource metadata
"""

import argparse
import json
import logging
import sys
from importlib.metadata import version as get_version

from mcpauth.config import get_settings
from mcpauth.logging_setup import setup_logging
from mcpauth.oauth2.errors import ConfigurationError
from mcpauth.oauth2.metadata import Capabilities

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="mcpauth",
        description="OAuth 2.0 authorization server for MCP servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mcpauth serve                      Start the server on 127.0.0.1:8000
  mcpauth serve --host 0.0.0.0       Listen on all interfaces
  mcpauth serve --dev                Start with auto-reload
  mcpauth metadata                   Print the discovery documents and exit

Configuration is read from MCPAUTH_* environment variables or .env.
""",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {get_version('mcpauth')}",
    )
    parser.add_argument(
        "command",
        choices=["serve", "metadata"],
        help="Subcommand to run",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind (default: MCPAUTH_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Port to bind (default: MCPAUTH_PORT or 8000)",
    )
    parser.add_argument(
        "--dev", action="store_true", help="Development mode with auto-reload"
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(level=settings.log_level)

    # Validate the issuer before anything is served
    from mcpauth.serve import build_documents

    capabilities = Capabilities(
        registration=settings.registration_enabled,
        revocation=settings.revocation_enabled,
    )
    try:
        metadata, resource_metadata = build_documents(settings, capabilities)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    if args.command == "metadata":
        json.dump(
            {
                "authorization_server": metadata.to_dict(),
                "protected_resource": resource_metadata.to_dict(),
            },
            sys.stdout,
            indent=2,
        )
        sys.stdout.write("\n")
        return

    from mcpauth.serve import run_server

    try:
        run_server(
            host=args.host or settings.host,
            port=args.port or settings.port,
            dev=args.dev,
        )
    except KeyboardInterrupt:
        logger.info("mcpauth stopped.")


if __name__ == "__main__":
    main()
