"""
HTML pages for the demo client. Presentation only; every dynamic value is escaped.
"""
import html

from oauth_client.session import AuthenticatedSession
from oauth_client.tokens import redact_token


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
{body}
</body>
</html>"""


def home_page(auth: AuthenticatedSession | None) -> str:
    if auth is None:
        return _page(
            "OAuth Client",
            """  <h1>OAuth2 + PKCE Client</h1>
  <p>You are not signed in.</p>
  <p><a href="/login">Log in</a></p>""",
        )
    return _page(
        "OAuth Client",
        f"""  <h1>OAuth2 + PKCE Client</h1>
  <p>Signed in as <strong>{html.escape(auth.user.display_name)}</strong>.</p>
  <p><a href="/protected">Protected area</a> | <a href="/logout">Log out</a></p>""",
    )


def authorization_url_page(url: str) -> str:
    """Demo mode: show the authorization URL instead of redirecting."""
    escaped = html.escape(url)
    return _page(
        "Start login",
        f"""  <h1>Start login</h1>
  <p>Authorization request URL:</p>
  <pre>{escaped}</pre>
  <p><a href="{escaped}">Continue to provider</a></p>
  <p><a href="/">Home</a></p>""",
    )


def protected_page(auth: AuthenticatedSession) -> str:
    user = auth.user
    tokens = auth.tokens
    rows = [
        ("Subject", user.id),
        ("Email", user.email or ""),
        ("Name", user.name or ""),
        ("Email verified", "" if user.email_verified is None else str(user.email_verified)),
        ("Token type", tokens.token_type),
        ("Scope", tokens.scope),
        ("Expires in", "" if tokens.expires_in is None else f"{tokens.expires_in}s"),
        ("Access token", redact_token(tokens.access_token)),
        ("Refresh token", "received" if tokens.refresh_token else "none"),
    ]
    table = "\n".join(
        f"    <tr><th>{html.escape(k)}</th><td><code>{html.escape(v)}</code></td></tr>" for k, v in rows
    )
    return _page(
        "Protected",
        f"""  <h1>Protected area</h1>
  <table>
{table}
  </table>
  <p><a href="/">Home</a> | <a href="/logout">Log out</a></p>""",
    )


def error_page(title: str, message: str) -> str:
    return _page(
        title,
        f"""  <h1>{html.escape(title)}</h1>
  <p>{html.escape(message)}</p>
  <p><a href="/login">Try again</a> | <a href="/">Home</a></p>""",
    )
