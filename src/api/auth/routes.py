"""User authentication routes (Box OAuth authorization-code flow).

Endpoints:
  GET /api/auth/login     - redirect to Box consent page
  GET /api/auth/callback  - exchange code, open session
  GET /api/auth/status    - {"isAuthenticated": bool}
  GET /api/auth/logout    - drop session

`refresh_session` is used by the file routes when Box rejects an expired
user token.
"""

import functools
import secrets

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse

from connectors.box.errors import AuthenticationError
from connectors.box.oauth import BoxOAuth
from utils.logging_config import get_logger

logger = get_logger(__name__)

_STATE_KEY = "oauth_state"


def require_auth(handler):
    """Reject requests without a user token in the session."""

    @functools.wraps(handler)
    async def wrapper(request: Request, *args, **kwargs):
        if not request.session.get("access_token"):
            return JSONResponse(
                content={"error": "Not authenticated. Please log in."}, status_code=401
            )
        return await handler(request, *args, **kwargs)

    return wrapper


async def refresh_session(request: Request, oauth: BoxOAuth):
    """Swap the session's refresh token for a new access token.

    Returns the new access token, or None when there is nothing to refresh
    or Box refused; a refused refresh ends the session.
    """
    refresh_token = request.session.get("refresh_token")
    if not refresh_token:
        return None
    try:
        tokens = await oauth.refresh_token(refresh_token)
    except AuthenticationError as exc:
        logger.warning("Session refresh failed", error=str(exc))
        request.session.clear()
        return None

    request.session["access_token"] = tokens["access_token"]
    # Box rotates refresh tokens; keep the old one if none came back
    request.session["refresh_token"] = tokens.get("refresh_token") or refresh_token
    logger.info("Session access token refreshed")
    return tokens["access_token"]


async def login(request: Request, oauth: BoxOAuth) -> RedirectResponse:
    """GET /api/auth/login"""
    state = secrets.token_urlsafe(16)
    request.session[_STATE_KEY] = state
    return RedirectResponse(oauth.get_authorization_url(state=state), status_code=302)


async def callback(request: Request, oauth: BoxOAuth, frontend_url: str):
    """GET /api/auth/callback"""
    code = request.query_params.get("code")
    logger.info("OAuth callback received", code_present=bool(code))
    if not code:
        return PlainTextResponse("Missing authorization code.", status_code=400)

    expected_state = request.session.pop(_STATE_KEY, None)
    if expected_state and request.query_params.get("state") != expected_state:
        return PlainTextResponse("Invalid OAuth state.", status_code=400)

    try:
        tokens = await oauth.exchange_code(code)
    except AuthenticationError as exc:
        return PlainTextResponse(f"Authentication error: {exc}", status_code=500)

    # Fresh session for the logged-in user
    request.session.clear()
    request.session["access_token"] = tokens["access_token"]
    request.session["refresh_token"] = tokens.get("refresh_token")
    return RedirectResponse(frontend_url, status_code=302)


async def status(request: Request) -> JSONResponse:
    """GET /api/auth/status"""
    return JSONResponse({"isAuthenticated": bool(request.session.get("access_token"))})


async def logout(request: Request) -> JSONResponse:
    """GET /api/auth/logout"""
    request.session.clear()
    return JSONResponse({"message": "Logged out."})
