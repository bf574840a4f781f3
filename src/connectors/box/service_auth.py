"""Service-account authentication for Box (JWT bearer grant).

The backend signs a short-lived assertion with the app's encrypted RSA key,
exchanges it at the token endpoint and caches the resulting bearer token for
its lifetime minus a safety margin.
"""

import time
import uuid
from typing import Callable, Optional

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from config.settings import BOX_TOKEN_ENDPOINT, BoxSettings
from connectors.box.errors import AuthenticationError, ConfigurationError
from utils.cache import TTLCache
from utils.logging_config import get_logger

logger = get_logger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 45
TOKEN_SAFETY_MARGIN = 60
TOKEN_CACHE_KEY = "box_access_token"


class ServiceTokenProvider:
    """Obtain and cache the service-account bearer token.

    Usage::

        provider = ServiceTokenProvider(settings, TTLCache())
        token = await provider.get_access_token()
    """

    def __init__(
        self,
        settings: BoxSettings,
        cache: TTLCache,
        wall_clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.settings = settings
        self._cache = cache
        self._wall_clock = wall_clock or time.time

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_access_token(self) -> str:
        """Return a cached service token, exchanging a fresh assertion on a miss."""
        cached = self._cache.get(TOKEN_CACHE_KEY)
        if cached:
            return cached

        # Backend calls always run as the service account itself
        assertion = self.build_assertion(force_enterprise=True)

        try:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout) as client:
                resp = await client.post(
                    BOX_TOKEN_ENDPOINT,
                    data={
                        "grant_type": JWT_BEARER_GRANT,
                        "client_id": self.settings.service_client_id,
                        "client_secret": self.settings.service_client_secret,
                        "assertion": assertion,
                    },
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Box service token exchange rejected",
                status_code=exc.response.status_code,
                error=exc.response.text,
            )
            raise AuthenticationError("Box service account authentication failed") from exc
        except httpx.HTTPError as exc:
            logger.error("Box service token exchange failed", error=str(exc))
            raise AuthenticationError("Box service account authentication failed") from exc

        try:
            payload = resp.json()
            access_token = payload.get("access_token")
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.error("Box service token response unreadable", error=str(exc))
            raise AuthenticationError("Box token endpoint returned an unreadable response") from exc
        if not access_token:
            raise AuthenticationError("Box token endpoint returned no access_token")

        self._cache.set(TOKEN_CACHE_KEY, access_token, ttl=expires_in - TOKEN_SAFETY_MARGIN)
        logger.info("Box service token obtained", expires_in=expires_in)
        return access_token

    def build_assertion(self, force_enterprise: bool = False) -> str:
        """Sign the JWT assertion exchanged for a service token.

        The subject is the enterprise unless an impersonation user id is
        configured and ``force_enterprise`` is False.
        """
        settings = self.settings
        if not settings.enterprise_id:
            raise ConfigurationError("BOX_ENTERPRISE_ID is not set")
        if not settings.service_client_id:
            raise ConfigurationError("BOX_SERVICE_CLIENT_ID is not set")

        if settings.user_id and not force_enterprise:
            subject, subject_type = settings.user_id, "user"
        else:
            subject, subject_type = settings.enterprise_id, "enterprise"
        logger.debug("Building Box assertion", subject_type=subject_type, subject=subject)

        claims = {
            "iss": settings.service_client_id,
            "sub": subject,
            "box_sub_type": subject_type,
            "aud": BOX_TOKEN_ENDPOINT,
            "jti": str(uuid.uuid4()),
            "exp": int(self._wall_clock()) + ASSERTION_LIFETIME,
        }
        headers = {"kid": settings.jwt_public_key_id} if settings.jwt_public_key_id else None

        private_key = self._load_private_key()
        try:
            return jwt.encode(claims, private_key, algorithm="RS512", headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            logger.error("Signing the Box assertion failed", error=str(exc))
            raise AuthenticationError(f"Could not sign the Box assertion: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_private_key(self):
        if not self.settings.jwt_private_key:
            raise ConfigurationError("BOX_JWT_PRIVATE_KEY is not set")
        if not self.settings.jwt_passphrase:
            raise ConfigurationError("BOX_JWT_PASSPHRASE is not set")
        try:
            return serialization.load_pem_private_key(
                self.settings.jwt_private_key.encode(),
                password=self.settings.jwt_passphrase.encode(),
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            logger.error("Decrypting the Box private key failed", error=str(exc))
            raise AuthenticationError(f"Could not decrypt the Box private key: {exc}") from exc
