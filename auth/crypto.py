"""
auth/crypto.py -- Password hashing, verification and secure token generation.

Security design decisions:
  Passwords: PBKDF2-HMAC-SHA512 via hashlib.pbkdf2_hmac, 64-byte derived key,
       iteration count from Settings.pbkdf2_iterations (floor 10,000, enforced
       by the settings validator). The salt is 32 random bytes stored next to
       the hash, so hash_password(p, salt) is deterministic and the stored
       pair is all verify_password() needs.

  Comparison: hmac.compare_digest, which does not exit early on the first
       differing byte. Malformed stored values compare as a mismatch rather
       than raising.

  Tokens: secrets.token_hex(32) gives 256 bits of entropy for registration
       and session tokens -- guessing is computationally infeasible.

  Timing equalization: _DUMMY_HASH lets the manager run a full PBKDF2
       derivation when the email is unknown, so response time does not reveal
       whether an account exists.

Layer rule: no imports from storage/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime

from auth.models import PasswordHash
from core.config import get_settings

_settings = get_settings()

_HASH_NAME = "sha512"
_KEY_BYTES = 64
_SALT_BYTES = 32
_TOKEN_BYTES = 32


def _derive(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        _HASH_NAME,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        _settings.pbkdf2_iterations,
        dklen=_KEY_BYTES,
    ).hex()


def hash_password(password: str, salt: str | None = None) -> PasswordHash:
    """Derive a hash for password. A fresh random salt is generated when none is given."""
    password_salt = salt or secrets.token_hex(_SALT_BYTES)
    return PasswordHash(hash=_derive(password, password_salt), salt=password_salt)


def verify_password(password: str, password_hash: str, salt: str) -> bool:
    """Return True if password derives to password_hash under salt."""
    if not password_hash or not salt:
        return False
    candidate = _derive(password, salt)
    return hmac.compare_digest(candidate.encode("ascii"), password_hash.encode("ascii", errors="replace"))


# Computed once at module load so the first unknown-email login is not
# measurably faster than later ones.
_DUMMY_HASH: PasswordHash = hash_password("campaign_timing_dummy")


def burn_verification(password: str) -> None:
    """Run a full verification against the dummy hash and discard the result.

    Called on the unknown-email path so it costs the same as a wrong-password
    check against a real record.
    """
    verify_password(password, _DUMMY_HASH.hash, _DUMMY_HASH.salt)


def generate_secure_token() -> str:
    """Return 32 random bytes as 64 hex characters."""
    return secrets.token_hex(_TOKEN_BYTES)


def generate_session_token() -> str:
    return generate_secure_token()


def is_expired(expiry: datetime | None, now: datetime) -> bool:
    """True when expiry is set and now is past it. A missing expiry never expires."""
    return expiry is not None and now > expiry
