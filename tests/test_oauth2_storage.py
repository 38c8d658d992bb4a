# Tests for OAuth2 models and in-memory stores.
# Created: 2026-10-19

from datetime import UTC, datetime, timedelta

import pytest

from mcpauth.oauth2.errors import InvalidRequest, InvalidScope
from mcpauth.oauth2.models import AuthorizationCode, OAuthClient, OAuthToken, TokenKind
from mcpauth.oauth2.pkce import s256_challenge, verify_code_verifier
from mcpauth.oauth2.storage import (
    ClientRegistrar,
    InMemoryClientStore,
    InMemoryCodeStore,
    InMemoryTokenStore,
)

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _code(value="code-1", client_id="client-1", ttl=timedelta(minutes=10)):
    return AuthorizationCode(
        code=value,
        client_id=client_id,
        code_challenge="challenge",
        scopes=["read"],
        redirect_uri="http://localhost/cb",
        expires_at=NOW + ttl,
    )


def _token(value="tok-1", client_id="client-1", expires_at=NOW + timedelta(hours=1)):
    return OAuthToken(
        token=value,
        client_id=client_id,
        scopes=["read"],
        kind=TokenKind.ACCESS,
        expires_at=expires_at,
    )


class TestOAuthClient:
    def test_explicit_redirect_uri_must_be_registered(self):
        client = OAuthClient(client_id="c", redirect_uris=["https://a/cb"])
        assert client.validate_redirect_uri("https://a/cb") == "https://a/cb"
        with pytest.raises(InvalidRequest):
            client.validate_redirect_uri("https://b/cb")

    def test_single_registered_uri_is_default(self):
        client = OAuthClient(client_id="c", redirect_uris=["https://a/cb"])
        assert client.validate_redirect_uri(None) == "https://a/cb"

    def test_multiple_uris_require_explicit(self):
        client = OAuthClient(client_id="c", redirect_uris=["https://a/cb", "https://b/cb"])
        with pytest.raises(InvalidRequest):
            client.validate_redirect_uri(None)

    def test_validate_scope(self):
        client = OAuthClient(client_id="c", redirect_uris=["https://a/cb"], scope="read write")
        assert client.validate_scope("write read write") == ["write", "read"]
        assert client.validate_scope(None) == []
        with pytest.raises(InvalidScope):
            client.validate_scope("admin")

    def test_unrestricted_scope(self):
        client = OAuthClient(client_id="c", redirect_uris=["https://a/cb"])
        assert client.validate_scope("anything") == ["anything"]

    def test_to_dict_omits_absent_fields(self):
        data = OAuthClient(client_id="c", redirect_uris=["https://a/cb"]).to_dict()
        assert data["client_id"] == "c"
        assert "client_secret" not in data
        assert "scope" not in data


class TestPKCE:
    def test_rfc7636_appendix_b_vector(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert s256_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        assert verify_code_verifier(verifier, "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM")

    def test_mismatch(self):
        assert not verify_code_verifier("abc", s256_challenge("abd"))


class TestCodeStore:
    def test_take_is_one_time(self):
        store = InMemoryCodeStore()
        store.save_code(_code())
        assert store.take_code("code-1", "client-1").code == "code-1"
        assert store.take_code("code-1", "client-1") is None

    def test_take_by_other_client_leaves_code(self):
        store = InMemoryCodeStore()
        store.save_code(_code())
        assert store.take_code("code-1", "client-2") is None
        assert len(store) == 1

    def test_purge_expired_inclusive(self):
        store = InMemoryCodeStore()
        store.save_code(_code("a", ttl=timedelta(minutes=10)))
        store.save_code(_code("b", ttl=timedelta(minutes=11)))
        assert store.purge_expired(NOW + timedelta(minutes=10)) == 1
        assert store.take_code("b", "client-1") is not None


class TestTokenStore:
    def test_save_get_delete(self):
        store = InMemoryTokenStore()
        store.save_token(_token())
        assert store.get_token("tok-1").client_id == "client-1"
        assert store.delete_token("tok-1") is True
        assert store.delete_token("tok-1") is False
        assert store.get_token("tok-1") is None

    def test_take_checks_owner(self):
        store = InMemoryTokenStore()
        store.save_token(_token())
        assert store.take_token("tok-1", "client-2") is None
        assert store.take_token("tok-1", "client-1") is not None
        assert store.take_token("tok-1", "client-1") is None

    def test_purge_keeps_non_expiring(self):
        store = InMemoryTokenStore()
        store.save_token(_token("old", expires_at=NOW))
        store.save_token(_token("forever", expires_at=None))
        assert store.purge_expired(NOW) == 1
        assert store.get_token("forever") is not None


def test_in_memory_client_store_is_registrar():
    store = InMemoryClientStore()
    assert isinstance(store, ClientRegistrar)
    client = OAuthClient(client_id="c", redirect_uris=["https://a/cb"])
    assert store.register_client(client) is client
    assert store.get_client("c") is client
