from __future__ import annotations

import hashlib
import secrets

TOKEN_SECRET_BYTES = 32


def sha512_hex(data: bytes) -> str:
    return hashlib.sha512(data).hexdigest()


def new_token_secret() -> str:
    """Generate a new API token secret.

    Secrets are 64-character lowercase hex strings, shown to the user once.
    """

    return secrets.token_hex(TOKEN_SECRET_BYTES)


def token_hash(secret: str) -> str:
    """Hash an API token secret for storage and lookup.

    Only this digest is persisted; the plain secret cannot be recovered from it.
    """

    secret = secret.strip().lower()
    if len(secret) != TOKEN_SECRET_BYTES * 2 or any(c not in "0123456789abcdef" for c in secret):
        raise ValueError("token secret must be a 64-character lowercase hex string")
    return sha512_hex(secret.encode("ascii"))
