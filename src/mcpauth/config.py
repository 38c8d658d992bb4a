# Server configuration.
# Created: 2026-10-19
#
# Values come from MCPAUTH_* environment variables or a .env file.
# The issuer URL is not validated here: it is checked once when the
# metadata documents are built at startup (see mcpauth.serve).

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Authorization server settings."""

    model_config = SettingsConfigDict(
        env_prefix="MCPAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_parse_none_str="none",
        extra="ignore",
    )

    # Identity & discovery
    issuer_url: str = Field(default="http://localhost:8000", description="Issuer identifier")
    base_url: str | None = Field(
        default=None, description="Origin the OAuth endpoints are served from (defaults to issuer)"
    )
    resource_server_url: str | None = Field(
        default=None, description="URL of the protected MCP server (defaults to issuer)"
    )
    resource_name: str | None = None
    service_documentation_url: str | None = None
    scopes_supported: list[str] | None = None

    # Lifetimes (seconds)
    access_token_ttl: int = Field(default=3600, gt=0)
    refresh_token_ttl: int | None = Field(
        default=30 * 24 * 3600,
        gt=0,
        description="None (MCPAUTH_REFRESH_TOKEN_TTL=none) = refresh tokens never expire",
    )
    code_ttl: int = Field(default=600, gt=0)

    # Policy & optional endpoints
    issue_refresh_tokens: bool = True
    require_code_verifier: bool = True
    registration_enabled: bool = True
    revocation_enabled: bool = True

    # Runtime
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cleanup_interval: int = Field(default=300, gt=0)
    audit_log_path: Path | None = None

    @classmethod
    def load(cls) -> Settings:
        return cls()


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
