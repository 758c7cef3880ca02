"""Password hashing for stored credentials."""

from __future__ import annotations

import hashlib
import hmac
import secrets

_SCHEME = "scrypt"
_N = 2**14
_R = 8
_P = 1
_SALT_BYTES = 16
_KEY_BYTES = 32


def hash_password(password: str) -> str:
    """Return ``scrypt$n$r$p$salt$digest`` for storage."""

    salt = secrets.token_bytes(_SALT_BYTES)
    digest = _derive(password, salt=salt, n=_N, r=_R, p=_P)
    return f"{_SCHEME}${_N}${_R}${_P}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    parts = stored.split("$")
    if len(parts) != 6 or parts[0] != _SCHEME:  # noqa: PLR2004
        return False
    try:
        n, r, p = (int(value) for value in parts[1:4])
        salt = bytes.fromhex(parts[4])
        expected = bytes.fromhex(parts[5])
    except ValueError:
        return False
    actual = _derive(password, salt=salt, n=n, r=r, p=p, dklen=len(expected))
    return hmac.compare_digest(actual, expected)


def _derive(  # noqa: PLR0913
    password: str,
    *,
    salt: bytes,
    n: int,
    r: int,
    p: int,
    dklen: int = _KEY_BYTES,
) -> bytes:
    return hashlib.scrypt(password.encode("utf-8"), salt=salt, n=n, r=r, p=p, dklen=dklen)
