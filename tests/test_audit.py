# Tests for the OAuth audit trail.
# Created: 2026-10-19

import json
import secrets
from urllib.parse import parse_qs, urlsplit

import pytest

from mcpauth.oauth2.errors import InvalidGrant
from mcpauth.oauth2.models import AuthorizationParams, OAuthClient
from mcpauth.oauth2.pkce import s256_challenge
from mcpauth.oauth2.server import AuthorizationServer
from mcpauth.oauth2.storage import InMemoryClientStore
from mcpauth.security.audit import AuditEvent, AuditLogger, fingerprint


@pytest.fixture
def audit_path(tmp_path):
    return tmp_path / "logs" / "audit.jsonl"


@pytest.fixture
def audit(audit_path):
    return AuditLogger(audit_path)


def _read(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestAuditLogger:
    def test_creates_parent_dir(self, audit, audit_path):
        assert audit_path.parent.is_dir()

    def test_log_appends_jsonl(self, audit, audit_path):
        audit.log(AuditEvent.create(actor="c1", action="token_issued", status="success"))
        audit.log_oauth_event("token_revoked", "c1", kind="access")
        events = _read(audit_path)
        assert [e["action"] for e in events] == ["token_issued", "token_revoked"]
        assert events[1]["context"] == {"kind": "access"}

    def test_callbacks(self, audit):
        seen = []
        audit.on_log(seen.append)
        event_id = audit.log_oauth_event("client_registered", "c1")
        assert seen[0]["id"] == event_id

    def test_write_failure_does_not_raise(self, audit, audit_path):
        audit_path.mkdir()  # a directory cannot be opened for append
        seen = []
        audit.on_log(seen.append)
        audit.log_oauth_event("token_issued", "c1")
        assert seen == []

    def test_unserializable_context_does_not_raise(self, audit, audit_path):
        audit.log_oauth_event("token_issued", "c1", when=object())
        assert not audit_path.exists() or audit_path.read_text() == ""

    def test_failing_callback_does_not_stop_others(self, audit):
        seen = []

        def broken(event):
            raise RuntimeError("sink down")

        audit.on_log(broken)
        audit.on_log(seen.append)
        audit.log_oauth_event("token_issued", "c1")
        assert len(seen) == 1


def test_failing_audit_sink_does_not_break_exchange(audit):
    verifier = secrets.token_urlsafe(32)
    client = OAuthClient(client_id="c1", redirect_uris=["http://localhost/cb"])
    server = AuthorizationServer(InMemoryClientStore([client]), audit=audit)

    def sink(event):
        if event["action"] == "token_issued":
            raise RuntimeError("sink down")

    audit.on_log(sink)
    target = server.authorize(
        client,
        AuthorizationParams(
            redirect_uri="http://localhost/cb", code_challenge=s256_challenge(verifier)
        ),
    )
    code = parse_qs(urlsplit(target).query)["code"][0]
    result = server.exchange_authorization_code(client, code, verifier)
    assert server.verify_access_token(result["access_token"]).client_id == "c1"


def test_fingerprint():
    assert fingerprint("abcdefghijklmnop") == "abcdefgh..."


def test_server_never_writes_token_values(audit, audit_path):
    verifier = secrets.token_urlsafe(32)
    client = OAuthClient(client_id="c1", redirect_uris=["http://localhost/cb"])
    server = AuthorizationServer(InMemoryClientStore([client]), audit=audit)

    target = server.authorize(
        client,
        AuthorizationParams(
            redirect_uri="http://localhost/cb", code_challenge=s256_challenge(verifier)
        ),
    )
    code = parse_qs(urlsplit(target).query)["code"][0]
    result = server.exchange_authorization_code(client, code, verifier)
    server.revoke_token(client, result["refresh_token"])

    raw = audit_path.read_text()
    assert result["access_token"] not in raw
    assert result["refresh_token"] not in raw
    actions = [e["action"] for e in _read(audit_path)]
    assert actions == ["code_issued", "token_issued", "token_revoked"]


def test_rejections_are_audited(audit, audit_path):
    client = OAuthClient(client_id="c1", redirect_uris=["http://localhost/cb"])
    server = AuthorizationServer(InMemoryClientStore([client]), audit=audit)
    with pytest.raises(InvalidGrant):
        server.exchange_authorization_code(client, "bogus", "verifier")
    event = _read(audit_path)[0]
    assert event["action"] == "grant_rejected"
    assert event["status"] == "rejected"
    assert event["context"]["grant_type"] == "authorization_code"
