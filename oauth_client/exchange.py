"""
Token and identity exchange with the provider (RFC 6749 section 4.1.3, OIDC UserInfo).
No automatic retries: an authorization code is single-use, so a rejected exchange is final.
"""
import logging

import httpx

from oauth_client.config import ProviderConfig
from oauth_client.errors import IdentityFetchFailed, TokenExchangeFailed, TransportError
from oauth_client.identity import IdentityClaims
from oauth_client.tokens import TokenSet, redact_token

logger = logging.getLogger(__name__)

# Provider error bodies are kept for server-side diagnostics only, truncated
_MAX_ERROR_BODY = 2000


def _is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def _error_body(response: httpx.Response) -> str:
    return (response.text or "")[:_MAX_ERROR_BODY]


def _post_token_request(config: ProviderConfig, data: dict[str, str]) -> TokenSet:
    if config.client_secret:
        data["client_secret"] = config.client_secret
    try:
        r = httpx.post(
            config.token_endpoint,
            data=data,
            headers={"Accept": "application/json"},
            timeout=config.timeout,
        )
    except httpx.RequestError as e:
        logger.warning("Token request to %s failed: %s", config.token_endpoint, type(e).__name__)
        raise TransportError(f"token endpoint unreachable: {type(e).__name__}") from e

    if not _is_success(r):
        body = _error_body(r)
        logger.warning("Token endpoint returned %s: %s", r.status_code, body[:200])
        raise TokenExchangeFailed(r.status_code, body)

    try:
        payload = r.json()
    except ValueError as e:
        raise TokenExchangeFailed(r.status_code, "token response is not valid JSON") from e
    return TokenSet.from_token_response(payload)


def exchange_code_for_tokens(config: ProviderConfig, code: str, code_verifier: str) -> TokenSet:
    """Exchange an authorization code plus PKCE verifier for tokens."""
    tokens = _post_token_request(
        config,
        {
            "grant_type": "authorization_code",
            "client_id": config.client_id,
            "code": code,
            "redirect_uri": config.redirect_uri,
            "code_verifier": code_verifier,
        },
    )
    logger.info("Token exchange succeeded (access_token=%s)", redact_token(tokens.access_token))
    return tokens


def refresh_tokens(config: ProviderConfig, refresh_token: str) -> TokenSet:
    """refresh_token grant. Keeps the old refresh token if the provider does not rotate it."""
    tokens = _post_token_request(
        config,
        {
            "grant_type": "refresh_token",
            "client_id": config.client_id,
            "refresh_token": refresh_token,
        },
    )
    if not tokens.refresh_token:
        tokens.refresh_token = refresh_token
    logger.info("Token refresh succeeded (access_token=%s)", redact_token(tokens.access_token))
    return tokens


def fetch_identity(config: ProviderConfig, access_token: str) -> IdentityClaims:
    """GET userinfo with the access token as a Bearer credential."""
    try:
        r = httpx.get(
            config.userinfo_endpoint,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=config.timeout,
        )
    except httpx.RequestError as e:
        logger.warning("Userinfo request to %s failed: %s", config.userinfo_endpoint, type(e).__name__)
        raise TransportError(f"userinfo endpoint unreachable: {type(e).__name__}") from e

    if not _is_success(r):
        body = _error_body(r)
        logger.warning("Userinfo endpoint returned %s: %s", r.status_code, body[:200])
        raise IdentityFetchFailed(r.status_code, body)

    try:
        payload = r.json()
    except ValueError as e:
        raise IdentityFetchFailed(r.status_code, "userinfo response is not valid JSON") from e
    return IdentityClaims.from_userinfo(payload)
