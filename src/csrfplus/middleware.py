"""FastAPI / Starlette binding for CSRF Plus.

Contains:
- ``CsrfHelper`` - per-request helper exposed as ``request.state.csrf_plus``
- ``CsrfPlus.middleware()`` - HTTP middleware that mints a token and sets the
  token cookie (and the session-id cookie when one was generated)
- ``CsrfPlus.verify()`` - FastAPI dependency guarding state-changing routes

Usage::

    csrf = CsrfPlus(cookie_options=CookieOptions(secure=False))
    app.middleware("http")(csrf.middleware)

    @app.post("/submit", dependencies=[Depends(csrf.verify)])
    async def submit(): ...

A session id set by an outer middleware as ``request.state.session_id`` takes
precedence over the session header and cookie.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from starlette.responses import Response

from csrfplus.config import CookieOptions, CsrfConfig, CsrfSettings, build_config
from csrfplus.engine import CsrfEngine, CsrfRequest
from csrfplus.errors import ConfigurationError
from csrfplus.storage.memory import MemoryStore

__all__ = ["CsrfHelper", "CsrfPlus", "csrf_request_from"]

logger = logging.getLogger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class CsrfHelper:
    """Mints tokens for the current request.

    A session key generated by the first ``token()`` call is reused by later
    calls in the same request, so every token handed out shares one secret.
    """

    def __init__(self, engine: CsrfEngine, request: CsrfRequest):
        self._engine = engine
        self._request = request
        self.cookie_name = engine.config.cookie_name
        self.field_name = engine.config.field_name
        self.header_name = engine.config.header_name
        self.session_key: str | None = None
        self.new_session_key = False

    async def token(self) -> str:
        issued = await self._engine.issue_token(self._request, self.session_key)
        if issued.session_key:
            self.session_key = issued.session_key
        self.new_session_key = self.new_session_key or issued.new_session_key
        return issued.token


async def csrf_request_from(request: Request, *, read_body: bool = False) -> CsrfRequest:
    """Build the engine's view of a Starlette request.

    The body is only parsed when *read_body* is set; unreadable bodies count
    as having no fields.
    """
    form: dict[str, Any] = {}
    if read_body:
        form = await _read_body_fields(request)

    return CsrfRequest(
        method=request.method,
        host=request.headers.get("host"),
        headers=dict(request.headers),
        form=form,
        query=dict(request.query_params),
        cookies=dict(request.cookies),
        session_id=getattr(request.state, "session_id", None),
    )


async def _read_body_fields(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    try:
        if content_type in _FORM_TYPES:
            return dict(await request.form())
        if content_type == "application/json" or content_type.endswith("+json"):
            body = await request.json()
            return body if isinstance(body, dict) else {}
    except Exception as exc:
        logger.debug("Could not parse request body for CSRF token: %s", exc)
    return {}


class CsrfPlus:
    """CSRF protection bundle: engine, middleware and route dependency.

    Pass either a ready ``CsrfConfig`` or keyword options. When stateful and no
    ``store`` option is given, a private ``MemoryStore`` is created and closed
    by ``shutdown()``.
    """

    def __init__(self, config: CsrfConfig | None = None, **options: Any):
        self._owns_store = False
        if config is None:
            if not options.get("stateless") and "store" not in options:
                options["store"] = MemoryStore()
                self._owns_store = True
            config = build_config(**options)
        elif options:
            raise ConfigurationError("pass either a CsrfConfig or keyword options, not both")

        self.config = config
        self.engine = CsrfEngine(config)

    @classmethod
    def from_env(cls, **overrides: Any) -> CsrfPlus:
        """Build from ``CSRF_PLUS_*`` environment settings plus *overrides*."""
        settings = CsrfSettings()
        stateless = overrides.get("stateless", settings.stateless)
        owns_store = not stateless and "store" not in overrides
        if owns_store and not settings.redis_url:
            overrides["store"] = MemoryStore()

        instance = cls(settings.to_config(**overrides))
        instance._owns_store = owns_store
        return instance

    # ------------------------------------------------------------------
    # HTTP middleware (register with app.middleware("http"))
    # ------------------------------------------------------------------

    async def middleware(self, request: Request, call_next):
        helper = CsrfHelper(self.engine, await csrf_request_from(request))
        request.state.csrf_plus = helper

        token = None
        try:
            token = await helper.token()
        except Exception as exc:
            if not self.config.is_production:
                logger.warning("CSRF token cookie is not set: %s", exc)

        response = await call_next(request)

        if helper.new_session_key and helper.session_key:
            self._set_cookie(response, self.config.cookie_sid_name, helper.session_key)
        if token:
            self._set_cookie(response, self.config.cookie_name, token)
        return response

    # ------------------------------------------------------------------
    # Route dependency
    # ------------------------------------------------------------------

    async def verify(self, request: Request) -> None:
        """FastAPI dependency: raise 403 on rejection, 500 on internal error."""
        read_body = request.method.upper() not in self.config.allowed_methods
        csrf_request = await csrf_request_from(request, read_body=read_body)
        verdict = await self.engine.verify(csrf_request)
        if verdict.accepted:
            return
        raise HTTPException(status_code=verdict.status_code, detail=verdict.detail)

    async def shutdown(self) -> None:
        """Close the store if this instance created it."""
        if not self._owns_store:
            return
        close = getattr(self.config.store, "close", None)
        if close is not None:
            await close()

    def _set_cookie(self, response: Response, name: str, value: str) -> None:
        opts: CookieOptions = self.config.cookie_options
        # The sid cookie is read by client scripts in the double-submit flow
        httponly = opts.httponly and name != self.config.cookie_sid_name
        response.set_cookie(
            key=name,
            value=value,
            max_age=opts.max_age,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=httponly,
            samesite=opts.samesite,
        )
