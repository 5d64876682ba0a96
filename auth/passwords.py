"""
auth/passwords.py -- One-way password hashing and verification.

Passwords: bcrypt used directly (no passlib wrapper). passlib's wrap-bug
detection creates a password longer than 72 bytes, which bcrypt 4.x rejects
with an explicit error. Direct bcrypt usage is simpler and actively maintained.

Every hash_password() call draws a fresh salt from bcrypt.gensalt(), so the same
input never produces the same digest twice. verify_password() delegates to
bcrypt.checkpw(), whose comparison is constant-time.

Layer rule: no imports from api/ or avatars/.
"""

from __future__ import annotations

import bcrypt

# bcrypt only reads the first 72 bytes; bcrypt>=5 raises instead of truncating.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Only the first 72 bytes of the password are significant.
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Any internal failure (malformed hash, unexpected type) is reported as a
    mismatch. Callers get a bool and nothing else to distinguish.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except Exception:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. authenticate_user() verifies against this when
# the email is unknown, so response time does not reveal account existence.
DUMMY_HASH: str = hash_password("avatarengine_timing_dummy")
