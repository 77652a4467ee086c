"""Tests for PKCE helpers, the authorize URL and the loopback callback listener."""

from __future__ import annotations

import base64
import contextlib
import hashlib
import socket
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from quant_cli.core.errors import (
    AuthorizationDeniedError,
    CallbackError,
    CallbackPortInUseError,
    LoginError,
    LoginTimeoutError,
    StateMismatchError,
)
from quant_cli.core.oauth import (
    CallbackListener,
    PKCEPair,
    build_authorize_url,
    compute_code_challenge,
    generate_pkce,
    generate_state,
)


def _get(listener: CallbackListener, query: str = "", path: str = "/callback") -> httpx.Response:
    return httpx.get(f"http://127.0.0.1:{listener.port}{path}?{query}", trust_env=False, timeout=5)


class TestPKCE:
    def test_challenge_is_sha256_of_verifier(self):
        for _ in range(20):
            pair = generate_pkce()
            digest = hashlib.sha256(pair.verifier.encode()).digest()
            assert pair.challenge == base64.urlsafe_b64encode(digest).decode().rstrip("=")

    def test_rfc7636_example(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert compute_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_verifier_length_and_alphabet(self):
        pair = generate_pkce()
        assert 43 <= len(pair.verifier) <= 128
        assert "=" not in pair.verifier and "=" not in pair.challenge
        assert pair.method == "S256"

    def test_pairs_are_unique(self):
        assert generate_pkce().verifier != generate_pkce().verifier

    def test_state_is_random_hex(self):
        state = generate_state()
        assert len(state) == 32
        int(state, 16)
        assert state != generate_state()


class TestAuthorizeUrl:
    def test_parameters(self):
        pkce = PKCEPair(verifier="v", challenge="c")
        url = build_authorize_url(
            "https://dash.example.test/", "http://localhost:8090/callback", "quant-cli",
            ("full_access",), "s1", pkce,
        )
        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://dash.example.test/oauth/authorize"
        assert {k: v[0] for k, v in parse_qs(parsed.query).items()} == {
            "client_id": "quant-cli",
            "redirect_uri": "http://localhost:8090/callback",
            "response_type": "code",
            "scope": "full_access",
            "state": "s1",
            "code_challenge": "c",
            "code_challenge_method": "S256",
        }

    def test_no_scope_when_empty(self):
        url = build_authorize_url("https://h", "http://localhost:1/callback", "id", (), "s", PKCEPair("v", "c"))
        assert "scope" not in parse_qs(urlparse(url).query)


class TestCallbackListener:
    def test_ephemeral_port_and_redirect_uri(self):
        with CallbackListener("s", port=0) as listener:
            assert listener.port > 0
            assert listener.redirect_uri == f"http://localhost:{listener.port}/callback"

    def test_reachable_through_redirect_uri_host(self):
        with CallbackListener("s", port=0) as listener:
            response = httpx.get(f"{listener.redirect_uri}?code=abc&state=s", trust_env=False, timeout=5)
            assert response.status_code == 200
            assert listener.wait(1) == "abc"

    def test_ipv6_loopback_shares_port(self):
        with CallbackListener("s", port=0) as listener:
            if "::1" not in listener.addresses:
                pytest.skip("no IPv6 loopback on this host")
            response = httpx.get(f"http://[::1]:{listener.port}/callback?code=v6&state=s", trust_env=False, timeout=5)
            assert response.status_code == 200
            assert listener.wait(1) == "v6"
        assert not listener.is_serving

    def test_ipv4_only(self):
        with CallbackListener("s", port=0, ipv6_host=None) as listener:
            assert listener.addresses == ["127.0.0.1"]

    def test_successful_callback_returns_code(self):
        with CallbackListener("good-state", port=0) as listener:
            response = _get(listener, "code=abc&state=good-state")
            assert response.status_code == 200
            assert "Authorization Successful" in response.text
            assert listener.wait(1) == "abc"

    def test_error_param(self):
        with CallbackListener("s", port=0) as listener:
            response = _get(listener, "error=access_denied&state=s")
            assert response.status_code == 400
            with pytest.raises(AuthorizationDeniedError) as exc:
                listener.wait(1)
        assert "access_denied" in exc.value.message

    def test_state_mismatch(self):
        with CallbackListener("expected", port=0) as listener:
            response = _get(listener, "code=abc&state=forged")
            assert response.status_code == 400
            with pytest.raises(StateMismatchError):
                listener.wait(1)

    def test_missing_state_is_mismatch(self):
        with CallbackListener("expected", port=0) as listener:
            _get(listener, "code=abc")
            with pytest.raises(StateMismatchError):
                listener.wait(1)

    def test_missing_code(self):
        with CallbackListener("s", port=0) as listener:
            _get(listener, "state=s")
            with pytest.raises(CallbackError):
                listener.wait(1)

    def test_unknown_path_does_not_settle(self):
        with CallbackListener("s", port=0) as listener:
            assert _get(listener, path="/favicon.ico").status_code == 404
            with pytest.raises(LoginTimeoutError):
                listener.wait(0.2)

    def test_first_outcome_wins(self):
        with CallbackListener("s", port=0) as listener:
            _get(listener, "code=first&state=s")
            second = _get(listener, "code=second&state=s")
            assert second.status_code == 400
            assert listener.wait(1) == "first"

    def test_error_html_is_escaped(self):
        with CallbackListener("s", port=0) as listener:
            response = _get(listener, "error=%3Cscript%3E&state=s")
            assert "<script>" not in response.text

    def test_timeout(self):
        with CallbackListener("s", port=0) as listener:
            with pytest.raises(LoginTimeoutError):
                listener.wait(0.1)

    @pytest.mark.parametrize("query", ["code=abc&state=s", "state=other", "error=denied"])
    def test_closed_after_every_outcome(self, query):
        with CallbackListener("s", port=0) as listener:
            port = listener.port
            _get(listener, query)
            with contextlib.suppress(LoginError):
                listener.wait(1)
        assert not listener.is_serving
        with pytest.raises(httpx.ConnectError):
            httpx.get(f"http://127.0.0.1:{port}/callback", trust_env=False, timeout=1)

    def test_closed_after_timeout(self):
        with pytest.raises(LoginTimeoutError):
            with CallbackListener("s", port=0) as listener:
                listener.wait(0.1)
        assert not listener.is_serving

    def test_port_in_use(self):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            port = blocker.getsockname()[1]
            with pytest.raises(CallbackPortInUseError) as exc:
                CallbackListener("s", port=port).start()
            assert "--port" in exc.value.hint
        finally:
            blocker.close()

    def test_close_is_idempotent(self):
        listener = CallbackListener("s", port=0)
        listener.start()
        listener.close()
        listener.close()
        assert not listener.is_serving
