"""Box OAuth 2.0 handler for end users (Authorization Code flow).

Tokens are not persisted here; the web layer keeps them in the user's
session.
"""

from urllib.parse import urlencode

import httpx

from config.settings import BOX_AUTH_ENDPOINT, BOX_TOKEN_ENDPOINT, BoxSettings
from connectors.box.errors import AuthenticationError
from utils.logging_config import get_logger, token_suffix

logger = get_logger(__name__)

# Only file read/write is requested so users are not asked for admin scopes
DEFAULT_SCOPE = "root_readwrite"


class BoxOAuth:
    """Box OAuth 2.0 handler.

    Usage::

        oauth = BoxOAuth(settings)
        url = oauth.get_authorization_url(state="...")
        tokens = await oauth.exchange_code(code)
    """

    def __init__(self, settings: BoxSettings, scope: str = DEFAULT_SCOPE) -> None:
        self.client_id = settings.client_id
        self.client_secret = settings.client_secret
        self.redirect_uri = settings.redirect_uri
        self.scope = scope
        self._timeout = settings.http_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_authorization_url(self, state: str = "") -> str:
        """Return the URL the user must visit to authorise this application."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
        }
        if state:
            params["state"] = state
        return f"{BOX_AUTH_ENDPOINT}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        """Exchange an authorization code for access + refresh tokens."""
        data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            }
        )
        logger.info(
            "Box authorization code exchanged",
            access_token_tail=token_suffix(data.get("access_token")),
        )
        return data

    async def refresh_token(self, refresh_token: str) -> dict:
        """Refresh the access token using a refresh token."""
        if not refresh_token:
            raise AuthenticationError(
                "No refresh token available. Complete the OAuth flow first."
            )
        data = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        logger.info("Box access token refreshed successfully")
        return data

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _token_request(self, form: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(BOX_TOKEN_ENDPOINT, data=form)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Box token request rejected",
                grant_type=form.get("grant_type"),
                status_code=exc.response.status_code,
                error=exc.response.text,
            )
            raise AuthenticationError("Box authentication failed") from exc
        except httpx.HTTPError as exc:
            logger.error("Box token request failed", error=str(exc))
            raise AuthenticationError("Box authentication failed") from exc

        try:
            data = resp.json()
            access_token = data.get("access_token")
        except (ValueError, AttributeError) as exc:
            logger.error("Box token response unreadable", grant_type=form.get("grant_type"), error=str(exc))
            raise AuthenticationError("Box token endpoint returned an unreadable response") from exc
        if not access_token:
            raise AuthenticationError("Box token endpoint returned no access_token")
        return data
