"""Tests for PKCE parameter generation and authorization URL building."""
import re
from urllib.parse import parse_qs, urlsplit

import pytest

from oauth_client.config import ProviderConfig
from oauth_client.pkce import (
    build_authorization_url,
    compute_code_challenge,
    generate_pkce_params,
    generate_random_string,
)

B64URL = re.compile(r"^[A-Za-z0-9_-]+$")


def test_random_string_alphabet_is_base64url_without_padding():
    for n in (1, 2, 3, 32, 96, 128):
        s = generate_random_string(n)
        assert B64URL.match(s)
        assert "=" not in s and "+" not in s and "/" not in s


def test_random_string_no_collisions():
    seen = {generate_random_string(32) for _ in range(10_000)}
    assert len(seen) == 10_000


def test_random_string_length_matches_byte_count():
    assert len(generate_random_string(32)) == 43
    assert len(generate_random_string(96)) == 128


def test_random_string_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_random_string(0)


def test_random_string_propagates_random_source_failure(monkeypatch):
    def broken(_n):
        raise NotImplementedError("no urandom")

    monkeypatch.setattr("oauth_client.pkce.secrets.token_bytes", broken)
    with pytest.raises(NotImplementedError):
        generate_random_string(32)


def test_code_challenge_rfc7636_appendix_b():
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert compute_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_code_challenge_is_deterministic_and_sensitive():
    verifier = generate_random_string(96)
    assert compute_code_challenge(verifier) == compute_code_challenge(verifier)
    flipped = verifier[:-1] + ("A" if verifier[-1] != "A" else "B")
    assert compute_code_challenge(flipped) != compute_code_challenge(verifier)
    assert len(compute_code_challenge(verifier)) == 43


def test_generate_pkce_params():
    p = generate_pkce_params()
    assert 43 <= len(p.code_verifier) <= 128
    assert len(p.code_verifier) == 128
    assert len(p.state) == 43
    assert B64URL.match(p.code_verifier)
    assert B64URL.match(p.state)
    assert p.code_challenge == compute_code_challenge(p.code_verifier)
    assert p.state != p.code_verifier


def test_generate_pkce_params_independent_calls():
    a = generate_pkce_params()
    b = generate_pkce_params()
    assert a.code_verifier != b.code_verifier
    assert a.state != b.state


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query, keep_blank_values=True)


def test_build_authorization_url_includes_required_params(provider_config):
    url = build_authorization_url(provider_config, "challenge123", "mystate")
    assert url.startswith("https://provider.example/oauth/authorize?")
    q = _query(url)
    assert q == {
        "response_type": ["code"],
        "client_id": ["test-client"],
        "redirect_uri": ["http://testserver/oauth/callback"],
        "scope": ["openid profile email"],
        "state": ["mystate"],
        "code_challenge": ["challenge123"],
        "code_challenge_method": ["S256"],
    }


def test_build_authorization_url_percent_encodes_values(provider_config):
    url = build_authorization_url(provider_config, "ch", "a b&c=d")
    assert "redirect_uri=http%3A%2F%2Ftestserver%2Foauth%2Fcallback" in url
    assert "scope=openid+profile+email" in url
    assert _query(url)["state"] == ["a b&c=d"]


def test_build_authorization_url_keeps_empty_scope():
    config = ProviderConfig(
        client_id="c",
        authorization_endpoint="https://as.example/authorize",
        token_endpoint="https://as.example/token",
        userinfo_endpoint="https://as.example/userinfo",
        redirect_uri="https://c.example/cb",
        scope="",
    )
    url = build_authorization_url(config, "ch", "s")
    assert "scope=" in url
    assert _query(url)["scope"] == [""]


def test_build_authorization_url_appends_to_existing_query():
    config = ProviderConfig(
        client_id="c",
        authorization_endpoint="https://as.example/authorize?tenant=t1",
        token_endpoint="https://as.example/token",
        userinfo_endpoint="https://as.example/userinfo",
        redirect_uri="https://c.example/cb",
        scope="openid",
    )
    url = build_authorization_url(config, "ch", "s")
    assert url.startswith("https://as.example/authorize?tenant=t1&response_type=code")
