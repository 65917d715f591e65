"""Token codecs: masked synchronizer tokens and signed stateless tokens."""

from csrfplus.tokens.mask import (
    DecodeResult,
    decode_plain_token,
    make_masked_token,
    try_unmask_token,
    unmask_token,
)
from csrfplus.tokens.stateless import (
    SignedTokenResult,
    create_stateless_token,
    sign_payload,
    verify_signed_token,
)

__all__ = [
    "DecodeResult",
    "SignedTokenResult",
    "create_stateless_token",
    "decode_plain_token",
    "make_masked_token",
    "sign_payload",
    "try_unmask_token",
    "unmask_token",
    "verify_signed_token",
]
