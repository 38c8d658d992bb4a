# mcpauth: OAuth 2.0 authorization server core for MCP servers.
# Created: 2026-10-19
#
# Authorization codes bound to PKCE challenges, opaque access/refresh tokens,
# and RFC 8414 / RFC 9728 discovery metadata, served by a thin FastAPI router.
