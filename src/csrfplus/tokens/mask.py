"""Masked synchronizer tokens.

Wire layout (decoded bytes): ``pad || (pad XOR secret)``, where ``pad`` is
fresh random bytes of the same length as the secret. Every mint yields a
different token for the same secret; verification always recovers the secret
and compares that, never the tokens themselves.
"""

from __future__ import annotations

from dataclasses import dataclass

from csrfplus import b64url
from csrfplus.crypto import random_bytes
from csrfplus.errors import MalformedTokenError

__all__ = [
    "DecodeResult",
    "decode_plain_token",
    "make_masked_token",
    "try_unmask_token",
    "unmask_token",
]


@dataclass(frozen=True)
class DecodeResult:
    """Either a recovered secret or the reason it could not be recovered."""

    value: bytes | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def make_masked_token(secret: bytes) -> str:
    pad = random_bytes(len(secret))
    return b64url.encode(pad + _xor(pad, secret))


def unmask_token(token: str) -> bytes:
    """Recover the secret from a masked token.

    Raises ``MalformedTokenError`` if the token is not b64url or its decoded
    length is zero or odd.
    """
    try:
        raw = b64url.decode(token)
    except ValueError as exc:
        raise MalformedTokenError(str(exc)) from exc

    if not raw or len(raw) % 2:
        raise MalformedTokenError(f"masked token has invalid length {len(raw)}")

    half = len(raw) // 2
    return _xor(raw[:half], raw[half:])


def try_unmask_token(token: str) -> DecodeResult:
    try:
        return DecodeResult(value=unmask_token(token))
    except MalformedTokenError as exc:
        return DecodeResult(error=str(exc))


def decode_plain_token(token: str) -> DecodeResult:
    """Decode an unmasked token (``mask=False``) back to the raw secret."""
    try:
        raw = b64url.decode(token)
    except ValueError as exc:
        return DecodeResult(error=str(exc))
    if not raw:
        return DecodeResult(error="empty token")
    return DecodeResult(value=raw)


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b, strict=True))
