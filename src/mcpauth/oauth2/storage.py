# OAuth2 client, code and token storage.
# Created: 2026-10-19
#
# The store contracts are plain key-value collaborators: no protocol logic
# beyond lookup and atomic compare-and-delete. The in-memory implementations
# guard each map with a single lock; a production deployment would back the
# same contracts with a transactional database keyed by code/token string.

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Protocol, runtime_checkable

from mcpauth.oauth2.models import AuthorizationCode, OAuthClient, OAuthToken

logger = logging.getLogger(__name__)


class ClientStore(Protocol):
    def get_client(self, client_id: str) -> OAuthClient | None: ...


@runtime_checkable
class ClientRegistrar(Protocol):
    """Optional capability: stores that accept dynamic client registration."""

    def get_client(self, client_id: str) -> OAuthClient | None: ...

    def register_client(self, client: OAuthClient) -> OAuthClient: ...


class CodeStore(Protocol):
    def save_code(self, code: AuthorizationCode) -> None: ...

    def take_code(self, code: str, client_id: str) -> AuthorizationCode | None:
        """Atomically remove and return *code* if it is owned by *client_id*."""
        ...

    def purge_expired(self, now: datetime) -> int: ...


class TokenStore(Protocol):
    def save_token(self, token: OAuthToken) -> None: ...

    def get_token(self, token: str) -> OAuthToken | None: ...

    def take_token(self, token: str, client_id: str) -> OAuthToken | None:
        """Atomically remove and return *token* if it is owned by *client_id*."""
        ...

    def delete_token(self, token: str) -> bool: ...

    def purge_expired(self, now: datetime) -> int: ...


class InMemoryClientStore:
    """Dict-backed client registry."""

    def __init__(self, clients: list[OAuthClient] | None = None):
        self._lock = threading.Lock()
        self._clients: dict[str, OAuthClient] = {c.client_id: c for c in clients or []}

    def get_client(self, client_id: str) -> OAuthClient | None:
        return self._clients.get(client_id)

    def register_client(self, client: OAuthClient) -> OAuthClient:
        with self._lock:
            self._clients[client.client_id] = client
        return client


class InMemoryCodeStore:
    """Authorization codes, in-memory only (short-lived)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._codes: dict[str, AuthorizationCode] = {}

    def __len__(self) -> int:
        return len(self._codes)

    def save_code(self, code: AuthorizationCode) -> None:
        with self._lock:
            self._codes[code.code] = code

    def take_code(self, code: str, client_id: str) -> AuthorizationCode | None:
        with self._lock:
            record = self._codes.get(code)
            if record is None or record.client_id != client_id:
                return None
            del self._codes[code]
            return record

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, v in self._codes.items() if v.is_expired(now)]
            for k in expired:
                del self._codes[k]
        return len(expired)


class InMemoryTokenStore:
    """Access and refresh tokens keyed by their opaque value."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: dict[str, OAuthToken] = {}

    def __len__(self) -> int:
        return len(self._tokens)

    def save_token(self, token: OAuthToken) -> None:
        with self._lock:
            self._tokens[token.token] = token

    def get_token(self, token: str) -> OAuthToken | None:
        return self._tokens.get(token)

    def take_token(self, token: str, client_id: str) -> OAuthToken | None:
        with self._lock:
            record = self._tokens.get(token)
            if record is None or record.client_id != client_id:
                return None
            del self._tokens[token]
            return record

    def delete_token(self, token: str) -> bool:
        with self._lock:
            return self._tokens.pop(token, None) is not None

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, v in self._tokens.items() if v.is_expired(now)]
            for k in expired:
                del self._tokens[k]
        if expired:
            logger.debug("Purged %d expired tokens", len(expired))
        return len(expired)
