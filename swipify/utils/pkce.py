"""PKCE (RFC 7636) helpers: code verifiers, S256 challenges and state tokens."""

from __future__ import annotations

import base64
import hashlib
import secrets

UNRESERVED_CHARACTERS = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64
STATE_BYTES = 32


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Return a random verifier drawn uniformly from the unreserved URI characters."""
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}, got {length}."
        )
    return "".join(secrets.choice(UNRESERVED_CHARACTERS) for _ in range(length))


def generate_code_challenge(verifier: str) -> str:
    """Derive the S256 challenge: unpadded base64url of SHA-256(verifier)."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    """Opaque anti-CSRF token, independent of any verifier."""
    # 32 bytes -> 43 base64url characters
    return secrets.token_urlsafe(STATE_BYTES)


def is_valid_code_verifier(value: str) -> bool:
    return MIN_VERIFIER_LENGTH <= len(value) <= MAX_VERIFIER_LENGTH and all(
        char in UNRESERVED_CHARACTERS for char in value
    )


__all__ = [
    "DEFAULT_VERIFIER_LENGTH",
    "MAX_VERIFIER_LENGTH",
    "MIN_VERIFIER_LENGTH",
    "UNRESERVED_CHARACTERS",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_state",
    "is_valid_code_verifier",
]
