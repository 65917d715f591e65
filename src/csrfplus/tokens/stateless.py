"""HMAC-signed stateless tokens with TTL.

Wire layout (decoded bytes): ``utf8(payload) || b"." || mac`` where
``mac = HMAC-SHA256(key, payload)``. The convenience payload is
``{"iat": <ms>, "exp": <ms>}``; extra fields survive sign/verify untouched.

The MAC is always the final 32 bytes. The separator is expected directly in
front of it rather than searched for, since the MAC itself may contain ``.``.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from csrfplus import b64url
from csrfplus.crypto import MAC_LENGTH, hmac_sha256, safe_equal

logger = logging.getLogger(__name__)

__all__ = [
    "SEPARATOR",
    "SignedTokenResult",
    "create_stateless_token",
    "now_ms",
    "sign_payload",
    "verify_signed_token",
]

SEPARATOR = b"."


@dataclass(frozen=True)
class SignedTokenResult:
    """Outcome of ``verify_signed_token``.

    ``ok`` reports signature validity only. A correctly signed token whose
    payload is not JSON still comes back ``ok=True`` with ``payload=None``.
    """

    ok: bool
    payload: Any = None


def now_ms() -> int:
    return int(time.time() * 1000)


def sign_payload(payload: str, key: str | bytes) -> str:
    payload_bytes = payload.encode("utf-8")
    mac = hmac_sha256(key, payload_bytes)
    return b64url.encode(payload_bytes + SEPARATOR + mac)


def verify_signed_token(token: str, key: str | bytes) -> SignedTokenResult:
    """Check the signature on *token* and parse its payload. Never raises.

    A missing or empty *key* verifies nothing and yields ``ok=False``.
    """
    if not key:
        return SignedTokenResult(ok=False)
    try:
        raw = b64url.decode(token)
    except (ValueError, TypeError, AttributeError):
        return SignedTokenResult(ok=False)

    boundary = len(raw) - MAC_LENGTH - len(SEPARATOR)
    if boundary < 0 or raw[boundary : boundary + len(SEPARATOR)] != SEPARATOR:
        return SignedTokenResult(ok=False)

    payload_bytes = raw[:boundary]
    mac = raw[boundary + len(SEPARATOR) :]
    if not safe_equal(mac, hmac_sha256(key, payload_bytes)):
        return SignedTokenResult(ok=False)

    try:
        payload = json.loads(payload_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.debug("Signed token carries a non-JSON payload")
        payload = None
    return SignedTokenResult(ok=True, payload=payload)


def create_stateless_token(ttl_ms: int, key: str | bytes) -> str:
    """Sign ``{"iat": now, "exp": now + ttl_ms}``.

    A negative *ttl_ms* produces a token that is already expired.
    """
    iat = now_ms()
    payload = json.dumps({"iat": iat, "exp": iat + ttl_ms}, separators=(",", ":"))
    return sign_payload(payload, key)
