"""
PKCE (RFC 7636) parameter generation and authorization request URL.
S256 only. Verifier, challenge and state are base64url without padding.
"""
import hashlib
import secrets
from base64 import urlsafe_b64encode
from dataclasses import dataclass
from urllib.parse import urlencode

from oauth_client.config import ProviderConfig

# 96 bytes -> 128 chars base64url, the RFC 7636 maximum verifier length.
# Not 128 bytes: that encodes to 171 chars, which conforming providers reject.
VERIFIER_BYTES = 96
STATE_BYTES = 32


@dataclass(frozen=True)
class PKCEParams:
    code_verifier: str
    code_challenge: str
    state: str


def _b64url(data: bytes) -> str:
    return urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_random_string(byte_length: int) -> str:
    """
    byte_length bytes from the OS CSPRNG, base64url-encoded without padding.
    Errors from the random source propagate; there is no weaker fallback.
    """
    if byte_length < 1:
        raise ValueError("byte_length must be at least 1")
    return _b64url(secrets.token_bytes(byte_length))


def compute_code_challenge(verifier: str) -> str:
    """S256 challenge: BASE64URL(SHA256(ASCII(code_verifier)))."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce_params() -> PKCEParams:
    code_verifier = generate_random_string(VERIFIER_BYTES)
    return PKCEParams(
        code_verifier=code_verifier,
        code_challenge=compute_code_challenge(code_verifier),
        state=generate_random_string(STATE_BYTES),
    )


def build_authorization_url(config: ProviderConfig, code_challenge: str, state: str) -> str:
    """Provider authorization URL with every required param, even when a value is empty."""
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    separator = "&" if "?" in config.authorization_endpoint else "?"
    return f"{config.authorization_endpoint}{separator}{urlencode(params)}"
