"""Token issue and verification engine.

Framework-neutral: callers describe the request with a ``CsrfRequest`` and
get back a token (``issue_token``) or a ``Verdict`` (``verify``). Binding to
an actual web framework lives in ``csrfplus.middleware``.

Verification order for a protected request:
  1. method bypass (``allowed_methods``)
  2. Origin / Referer host check (``origin_check``)
  3. token lookup: header, then body field, then query parameter
  4. stateless signature + expiry, or stateful secret comparison
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from csrfplus import b64url
from csrfplus.config import CsrfConfig
from csrfplus.crypto import random_bytes, safe_equal
from csrfplus.errors import RejectReason, Verdict
from csrfplus.tokens.mask import decode_plain_token, make_masked_token, try_unmask_token
from csrfplus.tokens.stateless import create_stateless_token, now_ms, verify_signed_token

__all__ = ["CsrfEngine", "CsrfRequest", "IssuedToken"]

logger = logging.getLogger(__name__)

SESSION_KEY_BYTES = 16

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass
class CsrfRequest:
    """The parts of an HTTP request the engine looks at.

    Header names are matched case-insensitively.
    """

    method: str
    host: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    session_id: str | None = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}
        if self.host is None:
            self.host = self.headers.get("host")

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token.

    ``new_session_key`` is True when the engine generated ``session_key``
    itself; the caller must hand it to the client (the sid cookie).
    """

    token: str
    session_key: str | None = None
    new_session_key: bool = False


class CsrfEngine:
    """Mints and verifies CSRF tokens for one ``CsrfConfig``."""

    def __init__(self, config: CsrfConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def resolve_session_key(self, request: CsrfRequest) -> str | None:
        """Session id, else session header, else sid cookie."""
        return (
            request.session_id
            or request.header(self.config.session_header_name)
            or request.cookies.get(self.config.cookie_sid_name)
            or None
        )

    async def get_or_create_secret(
        self,
        request: CsrfRequest,
        session_key: str | None = None,
    ) -> tuple[str, bytes, bool]:
        """Return ``(session_key, secret, new_session_key)``.

        Generates a session key when none can be resolved, and a secret when
        the store has none for the key. Two concurrent calls for a new key may
        both write; the last write wins.
        """
        if self.config.stateless:
            raise RuntimeError("stateless mode keeps no server-side secrets")

        created = False
        key = session_key or self.resolve_session_key(request)
        if not key:
            key = b64url.encode(random_bytes(SESSION_KEY_BYTES))
            created = True

        store = self.config.store
        stored = await store.get(key)
        if stored:
            return key, b64url.decode(stored), created

        secret = random_bytes(self.config.secret_len)
        await store.set(key, b64url.encode(secret), self.config.ttl)
        logger.debug("Created CSRF secret for new session key")
        return key, secret, created

    async def issue_token(
        self,
        request: CsrfRequest,
        session_key: str | None = None,
    ) -> IssuedToken:
        if self.config.stateless:
            token = create_stateless_token(self.config.stateless_ttl, self.config.stateless_key)
            return IssuedToken(token)

        key, secret, created = await self.get_or_create_secret(request, session_key)
        token = make_masked_token(secret) if self.config.mask else b64url.encode(secret)
        return IssuedToken(token, session_key=key, new_session_key=created)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    async def verify(self, request: CsrfRequest) -> Verdict:
        """Decide whether *request* may proceed. Never raises."""
        try:
            verdict = await self._verify(request)
        except Exception:
            if not self.config.is_production:
                logger.error("CSRF verification error", exc_info=True)
            return Verdict.internal_error()

        if not verdict.accepted:
            logger.debug("CSRF rejected %s request: %s", request.method, verdict.reason.value)
        return verdict

    async def _verify(self, request: CsrfRequest) -> Verdict:
        if request.method in self.config.allowed_methods:
            return Verdict.accept()

        if self.config.origin_check and not self._origin_matches(request):
            return Verdict.reject(RejectReason.ORIGIN_MISMATCH)

        token = self.extract_token(request)
        if not token:
            return Verdict.reject(RejectReason.TOKEN_MISSING)

        if self.config.stateless:
            return self._verify_stateless(token)
        return await self._verify_stateful(request, token)

    def extract_token(self, request: CsrfRequest) -> str | None:
        """First non-empty token from header, body field or query parameter."""
        candidates = (
            request.header(self.config.header_name),
            request.form.get(self.config.field_name),
            request.query.get(self.config.field_name),
        )
        for value in candidates:
            if isinstance(value, str) and value:
                return value
        return None

    def _origin_matches(self, request: CsrfRequest) -> bool:
        host = (request.host or "").lower()
        if not host:
            return False

        origin = request.header("origin")
        source = origin if origin else request.header("referer")
        if not source:
            return False
        return _url_host(source) == host

    def _verify_stateless(self, token: str) -> Verdict:
        result = verify_signed_token(token, self.config.stateless_key)
        if not result.ok or not isinstance(result.payload, dict):
            return Verdict.reject(RejectReason.TOKEN_INVALID)

        exp = result.payload.get("exp")
        if exp is not None:
            if isinstance(exp, bool) or not isinstance(exp, int | float):
                return Verdict.reject(RejectReason.TOKEN_INVALID)
            if now_ms() > exp:
                return Verdict.reject(RejectReason.TOKEN_EXPIRED)
        return Verdict.accept()

    async def _verify_stateful(self, request: CsrfRequest, token: str) -> Verdict:
        key = self.resolve_session_key(request)
        if not key:
            return Verdict.reject(RejectReason.SESSION_MISSING)

        stored = await self.config.store.get(key)
        if not stored:
            return Verdict.reject(RejectReason.SECRET_MISSING)
        secret = b64url.decode(stored)

        decoded = try_unmask_token(token) if self.config.mask else decode_plain_token(token)
        if not decoded.ok:
            return Verdict.reject(RejectReason.TOKEN_MALFORMED)
        if len(decoded.value) != len(secret):
            return Verdict.reject(RejectReason.LENGTH_MISMATCH)
        if not safe_equal(decoded.value, secret):
            return Verdict.reject(RejectReason.VALUE_MISMATCH)
        return Verdict.accept()


def _url_host(url: str) -> str | None:
    """``host[:port]`` of *url*, lower-cased, default port dropped."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None

    netloc = parts.netloc.rpartition("@")[2].lower()
    if port is not None and port == _DEFAULT_PORTS.get(parts.scheme.lower()):
        netloc = netloc.rsplit(":", 1)[0]
    return netloc
