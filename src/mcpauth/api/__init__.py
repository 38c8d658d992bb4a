# HTTP layer: FastAPI router and dependencies over mcpauth.oauth2.
# Created: 2026-10-19
