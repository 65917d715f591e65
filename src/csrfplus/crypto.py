"""Random bytes, constant-time comparison and HMAC-SHA256.

Thin wrappers over ``secrets`` / ``hmac`` so the codecs above never touch
the primitives directly.
"""

import hashlib
import hmac
import secrets

__all__ = ["MAC_LENGTH", "hmac_sha256", "random_bytes", "safe_equal"]

MAC_LENGTH = hashlib.sha256().digest_size


def random_bytes(n: int) -> bytes:
    """Return *n* cryptographically secure random bytes."""
    if n < 0:
        raise ValueError(f"byte count must be non-negative, got {n}")
    return secrets.token_bytes(n)


def safe_equal(a: bytes | str, b: bytes | str) -> bool:
    """Compare two values in constant time.

    Strings are UTF-8 encoded first. Values of different length compare unequal.
    """
    a = _to_bytes(a)
    b = _to_bytes(b)
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


def hmac_sha256(key: bytes | str, message: bytes | str) -> bytes:
    return hmac.new(_to_bytes(key), _to_bytes(message), hashlib.sha256).digest()


def _to_bytes(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)
