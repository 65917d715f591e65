"""CSRF Plus - anti-forgery tokens for state-changing web requests.

Two trust models:
  - stateful: a per-session secret kept in a ``SecretStore``, handed out as
    masked synchronizer tokens
  - stateless: self-contained HMAC-signed tokens with an expiry
"""

from typing import Any

from csrfplus.config import CookieOptions, CsrfConfig, CsrfSettings, build_config
from csrfplus.engine import CsrfEngine, CsrfRequest, IssuedToken
from csrfplus.errors import (
    ConfigurationError,
    MalformedTokenError,
    Outcome,
    RejectReason,
    Verdict,
)
from csrfplus.middleware import CsrfHelper, CsrfPlus
from csrfplus.storage import MemoryStore, RedisStore, SecretStore

__all__ = [
    "ConfigurationError",
    "CookieOptions",
    "CsrfConfig",
    "CsrfEngine",
    "CsrfHelper",
    "CsrfPlus",
    "CsrfRequest",
    "CsrfSettings",
    "IssuedToken",
    "MalformedTokenError",
    "MemoryStore",
    "Outcome",
    "RedisStore",
    "RejectReason",
    "SecretStore",
    "Verdict",
    "build_config",
    "create_csrf_plus",
]

__version__ = "1.0.0"


def create_csrf_plus(**options: Any) -> CsrfPlus:
    """Create a ``CsrfPlus`` bundle configured with *options*."""
    return CsrfPlus(**options)
