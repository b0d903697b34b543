"""
auth/passwords.py -- One-way password hashing (bcrypt).

Bcrypt is the right choice for low-entropy secrets (passwords) because its
cost factor makes brute-force expensive. Plaintext passwords are never
stored and never compared directly.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The DUMMY_HASH constant enables timing equalization in
UserLifecycleManager.login() so response time does not reveal whether an
email is registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

BCRYPT_ROUNDS = 12


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. Settings caps
    password length at 72 so that never happens silently.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        # Malformed or non-bcrypt hash in storage
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("imagedrop_timing_dummy")
