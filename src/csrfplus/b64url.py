"""URL-safe base64 without padding.

``+`` becomes ``-``, ``/`` becomes ``_`` and trailing ``=`` is stripped on
encode, then restored on decode.
"""

import base64
import re

__all__ = ["decode", "encode"]

_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


def encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def decode(text: str) -> bytes:
    """Decode a b64url string, tolerating missing padding.

    Raises ``ValueError`` when the text is not valid b64url.
    """
    text = text.rstrip("=")
    if not _ALPHABET.fullmatch(text):
        raise ValueError("token contains characters outside the b64url alphabet")
    # A single leftover character cannot encode a whole byte
    if len(text) % 4 == 1:
        raise ValueError("invalid b64url length")
    data = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    # Reject set padding bits so each byte string has exactly one encoding
    if encode(data) != text:
        raise ValueError("non-canonical b64url encoding")
    return data
