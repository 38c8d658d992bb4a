# PKCE (RFC 7636) helpers. Only the S256 method is supported.
# Created: 2026-10-19

from __future__ import annotations

import base64
import hashlib
import hmac

S256 = "S256"


def s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    return (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )


def verify_code_verifier(code_verifier: str, code_challenge: str) -> bool:
    """Constant-time check of a verifier against a stored S256 challenge."""
    return hmac.compare_digest(s256_challenge(code_verifier).encode(), code_challenge.encode())
