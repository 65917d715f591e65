# Tests for the FastAPI binding: form mint, submit, header tokens, origin checks.
# Created: 2026-10-18

import re

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.testclient import TestClient

from csrfplus import CookieOptions, CsrfPlus, create_csrf_plus
from csrfplus.storage import MemoryStore
from csrfplus.tokens.stateless import create_stateless_token

INSECURE_COOKIES = CookieOptions(secure=False)
STATELESS_KEY = "test-stateless-key-xxx"

_TOKEN_RE = re.compile(r'name="_csrf" value="([^"]+)"')


def _make_app(csrf: CsrfPlus, session_id: str | None = "test-session") -> FastAPI:
    app = FastAPI()
    app.middleware("http")(csrf.middleware)

    # Registered last so it runs first and the session id is visible to CSRF
    @app.middleware("http")
    async def fake_session(request: Request, call_next):
        if session_id:
            request.state.session_id = session_id
        return await call_next(request)

    @app.get("/form", response_class=HTMLResponse)
    async def form(request: Request):
        token = await request.state.csrf_plus.token()
        return f'<form method="POST"><input type="hidden" name="_csrf" value="{token}"></form>'

    @app.get("/ping", response_class=PlainTextResponse)
    async def ping():
        return "pong"

    @app.post("/submit", dependencies=[Depends(csrf.verify)], response_class=PlainTextResponse)
    async def submit():
        return "ok"

    @app.get("/protected", dependencies=[Depends(csrf.verify)], response_class=PlainTextResponse)
    async def protected_get():
        return "read-only"

    return app


def _form_token(client: TestClient) -> str:
    resp = client.get("/form")
    assert resp.status_code == 200
    match = _TOKEN_RE.search(resp.text)
    assert match
    return match.group(1)


class _BrokenStore:
    async def get(self, key):
        raise ConnectionError("store unavailable")

    async def set(self, key, value, ttl_seconds=0):
        raise ConnectionError("store unavailable")

    async def delete(self, key):
        raise ConnectionError("store unavailable")


@pytest.fixture
def csrf():
    return create_csrf_plus(
        store=MemoryStore(sweep_interval=None),
        cookie_options=INSECURE_COOKIES,
        origin_check=False,
    )


@pytest.fixture
def client(csrf):
    return TestClient(_make_app(csrf))


class TestStatefulFlow:
    def test_form_sets_token_cookie_and_body_submit_passes(self, client):
        resp = client.get("/form")
        assert "CSRF_PLUS_TOKEN" in resp.cookies
        token = _TOKEN_RE.search(resp.text).group(1)

        resp = client.post("/submit", data={"_csrf": token})
        assert resp.status_code == 200
        assert resp.text == "ok"

    def test_missing_token_is_403(self, client):
        resp = client.post("/submit")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF token missing."

    def test_header_token_passes(self, client):
        token = _form_token(client)
        resp = client.post("/submit", headers={"x-csrf-plus": token})
        assert resp.status_code == 200

    def test_json_body_token_passes(self, client):
        token = _form_token(client)
        resp = client.post("/submit", json={"_csrf": token})
        assert resp.status_code == 200

    def test_query_token_passes(self, client):
        token = _form_token(client)
        resp = client.post("/submit", params={"_csrf": token})
        assert resp.status_code == 200

    def test_invalid_token_rejected(self, client):
        _form_token(client)
        resp = client.post("/submit", data={"_csrf": "not-a-valid-token"})
        assert resp.status_code == 403

    def test_token_from_other_session_rejected(self, csrf):
        other = TestClient(_make_app(csrf, session_id="other-session"))
        token = _form_token(other)

        client = TestClient(_make_app(csrf))
        _form_token(client)
        resp = client.post("/submit", data={"_csrf": token})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF token mismatch."

    def test_get_bypasses_verification(self, client):
        resp = client.get("/protected")
        assert resp.status_code == 200
        assert resp.text == "read-only"


class TestSessionCookie:
    def test_generated_sid_cookie_round_trip(self, csrf):
        client = TestClient(_make_app(csrf, session_id=None))
        resp = client.get("/form")
        assert "CSRF_PLUS_SID" in resp.cookies
        token = _TOKEN_RE.search(resp.text).group(1)

        resp = client.post("/submit", data={"_csrf": token})
        assert resp.status_code == 200

    def test_sid_cookie_not_httponly(self, csrf):
        client = TestClient(_make_app(csrf, session_id=None))
        resp = client.get("/form")
        sid_cookies = [
            c for c in resp.headers.get_list("set-cookie") if c.startswith("CSRF_PLUS_SID=")
        ]
        assert len(sid_cookies) == 1
        assert "httponly" not in sid_cookies[0].lower()

    def test_no_session_no_cookie_rejected(self, csrf):
        client = TestClient(_make_app(csrf, session_id=None))
        token = _form_token(client)
        client.cookies.clear()
        resp = client.post("/submit", data={"_csrf": token})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF session missing."

    def test_secure_cookie_by_default(self):
        csrf = CsrfPlus(store=MemoryStore(sweep_interval=None), origin_check=False)
        resp = TestClient(_make_app(csrf)).get("/ping")
        token_cookie = next(
            c for c in resp.headers.get_list("set-cookie") if c.startswith("CSRF_PLUS_TOKEN=")
        )
        assert "secure" in token_cookie.lower()
        assert "samesite=lax" in token_cookie.lower()


class TestOriginCheck:
    @pytest.fixture
    def client(self):
        csrf = CsrfPlus(store=MemoryStore(sweep_interval=None), cookie_options=INSECURE_COOKIES)
        return TestClient(_make_app(csrf))

    def test_cross_origin_rejected_with_valid_token(self, client):
        token = _form_token(client)
        resp = client.post(
            "/submit",
            headers={"x-csrf-plus": token, "Origin": "http://evil.example"},
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF: origin/referrer mismatch."

    def test_same_origin_accepted(self, client):
        token = _form_token(client)
        resp = client.post(
            "/submit",
            headers={"x-csrf-plus": token, "Origin": "http://testserver"},
        )
        assert resp.status_code == 200

    def test_referer_accepted(self, client):
        token = _form_token(client)
        resp = client.post(
            "/submit",
            headers={"x-csrf-plus": token, "Referer": "http://testserver/form"},
        )
        assert resp.status_code == 200


class TestStatelessFlow:
    @pytest.fixture
    def client(self):
        csrf = CsrfPlus(
            stateless=True,
            stateless_key=STATELESS_KEY,
            stateless_ttl=60_000,
            cookie_options=INSECURE_COOKIES,
            origin_check=False,
        )
        return TestClient(_make_app(csrf, session_id=None))

    def test_form_token_passes(self, client):
        token = _form_token(client)
        resp = client.post("/submit", data={"_csrf": token})
        assert resp.status_code == 200

    def test_expired_token_rejected(self, client):
        expired = create_stateless_token(-1000, STATELESS_KEY)
        resp = client.post("/submit", headers={"x-csrf-plus": expired})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF token expired."

    def test_forged_token_rejected(self, client):
        forged = create_stateless_token(60_000, "attacker-key")
        resp = client.post("/submit", headers={"x-csrf-plus": forged})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "CSRF token invalid."


class TestFailures:
    def test_mint_failure_does_not_block_request(self, caplog):
        csrf = CsrfPlus(store=_BrokenStore(), origin_check=False)
        with caplog.at_level("WARNING", logger="csrfplus.middleware"):
            resp = TestClient(_make_app(csrf)).get("/ping")
        assert resp.status_code == 200
        assert resp.text == "pong"
        assert "CSRF_PLUS_TOKEN" not in resp.cookies
        assert "CSRF token cookie is not set" in caplog.text

    def test_verify_failure_is_generic_500(self):
        csrf = CsrfPlus(store=_BrokenStore(), origin_check=False)
        resp = TestClient(_make_app(csrf)).post("/submit", headers={"x-csrf-plus": "abc"})
        assert resp.status_code == 500
        assert resp.json() == {"detail": "CSRF verification error."}
