"""
URLs exchanged with the web app.

The invitation token travels in the path of review links and in the query
string of auth and project links. After an auth detour, the token, invitee
email and auth mode ride along as query parameters so the flow resumes in
the right place.
"""

from typing import Optional
from uuid import UUID

import httpx
from pydantic import BaseModel

from .identity.models import AuthMode

LANDING_URL = "/"
DASHBOARD_URL = "/dashboard"
AUTH_PATH = "/auth"


def _with_base(path: str, base_url: Optional[str]) -> str:
    return f"{base_url.rstrip('/')}{path}" if base_url else path


def _build(path: str, base_url: Optional[str] = None, **params: Optional[str]) -> str:
    query = {k: v for k, v in params.items() if v is not None}
    return _with_base(str(httpx.URL(path, params=query)), base_url)


def review_url(token: str, base_url: Optional[str] = None) -> str:
    """Public review page for an invitation."""
    return _with_base(f"/review/{token}", base_url)


def auth_url(
    token: str,
    email: Optional[str] = None,
    mode: Optional[AuthMode] = None,
    next_url: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    """
    Auth page link that carries the invitation through sign-in or sign-up.

    ``next_url`` is where to go once authenticated; encoding it here
    replaces storing it in the browser before the detour.
    """
    return _build(
        AUTH_PATH,
        base_url,
        invitation=token,
        email=email,
        mode=mode.value if mode else None,
        next=next_url,
    )


def logout_url(token: str, base_url: Optional[str] = None) -> str:
    """Where to send an invitee who signs out to switch accounts."""
    return auth_url(token, base_url=base_url)


def project_url(
    project_id: UUID,
    token: str,
    prompt_id: UUID,
    base_url: Optional[str] = None,
) -> str:
    """Project page with the reviewed prompt highlighted."""
    return _build(
        f"/project/{project_id}",
        base_url,
        invitation=token,
        prompt=str(prompt_id),
    )


def dashboard_url(base_url: Optional[str] = None) -> str:
    return _with_base(DASHBOARD_URL, base_url)


def landing_url(base_url: Optional[str] = None) -> str:
    return _with_base(LANDING_URL, base_url)


class AuthIntent(BaseModel):
    """What an auth URL asks for once the user is signed in."""

    invitation_token: Optional[str] = None
    email: Optional[str] = None
    mode: AuthMode = AuthMode.SIGN_IN
    next_url: Optional[str] = None


def parse_auth_intent(url: str) -> AuthIntent:
    """
    Read the invitation intent back out of an auth URL.

    Unknown ``mode`` values fall back to sign-in.
    """
    params = httpx.URL(url).params
    mode = params.get("mode")
    return AuthIntent(
        invitation_token=params.get("invitation") or None,
        email=params.get("email") or None,
        mode=AuthMode(mode) if mode in {m.value for m in AuthMode} else AuthMode.SIGN_IN,
        next_url=params.get("next") or None,
    )
