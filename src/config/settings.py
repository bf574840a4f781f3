import os
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv

from connectors.box.errors import ConfigurationError
from utils.logging_config import get_logger

load_dotenv(override=False)
load_dotenv("../", override=False)

logger = get_logger(__name__)

# ---------------------------------------------------------------
# Runtime environment
# APP_ENV=development (or dev) switches on development defaults
# ---------------------------------------------------------------
_APP_ENV = os.getenv("APP_ENV", "production").lower()


def is_dev_mode() -> bool:
    """Return True when APP_ENV is "development" or "dev"."""
    return _APP_ENV in ("development", "dev")


# Box endpoints
BOX_API_BASE = "https://api.box.com/2.0"
BOX_AUTH_ENDPOINT = "https://account.box.com/api/oauth2/authorize"
BOX_TOKEN_ENDPOINT = "https://api.box.com/oauth2/token"

# Web server / session
PORT = int(os.getenv("PORT", "3001"))
SESSION_SECRET = os.getenv("SESSION_SECRET", "your-secret-key-change-in-production")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "3600"))
FRONTEND_URL = os.getenv("FRONTEND_URL", "https://localhost:3000/")

# Default upstream timeout in seconds
DEFAULT_HTTP_TIMEOUT = 30.0
# Folder-info cache TTL in seconds, independent of the token's lifetime
DEFAULT_FOLDER_INFO_CACHE_TTL = 60.0


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class BoxSettings:
    """Box credential material and client tuning.

    User OAuth uses ``client_id``/``client_secret``; the service account
    (JWT bearer grant) uses the ``service_*`` pair together with the
    encrypted private key.
    """

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "https://localhost:3001/api/auth/callback"
    service_client_id: str = ""
    service_client_secret: str = ""
    enterprise_id: str = ""
    user_id: str = ""
    jwt_private_key: str = field(default="", repr=False)
    jwt_passphrase: str = field(default="", repr=False)
    jwt_public_key_id: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    folder_info_cache_ttl: float = DEFAULT_FOLDER_INFO_CACHE_TTL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BoxSettings":
        env = os.environ if environ is None else environ
        return cls(
            client_id=env.get("BOX_CLIENT_ID", ""),
            client_secret=env.get("BOX_CLIENT_SECRET", ""),
            redirect_uri=env.get(
                "BOX_REDIRECT_URI", "https://localhost:3001/api/auth/callback"
            ),
            service_client_id=env.get("BOX_SERVICE_CLIENT_ID", ""),
            service_client_secret=env.get("BOX_SERVICE_CLIENT_SECRET", ""),
            enterprise_id=env.get("BOX_ENTERPRISE_ID", ""),
            user_id=env.get("BOX_USER_ID", ""),
            # Keys stored in .env files usually carry escaped newlines
            jwt_private_key=env.get("BOX_JWT_PRIVATE_KEY", "").replace("\\n", "\n"),
            jwt_passphrase=env.get("BOX_JWT_PASSPHRASE", ""),
            jwt_public_key_id=env.get("BOX_JWT_PUBLIC_KEY_ID", ""),
            http_timeout=_env_float(env, "BOX_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            folder_info_cache_ttl=_env_float(
                env, "FOLDER_INFO_CACHE_TTL", DEFAULT_FOLDER_INFO_CACHE_TTL
            ),
        )

    def require_service_credentials(self) -> None:
        """Raise ConfigurationError naming every missing service-account variable."""
        required = {
            "BOX_ENTERPRISE_ID": self.enterprise_id,
            "BOX_SERVICE_CLIENT_ID": self.service_client_id,
            "BOX_SERVICE_CLIENT_SECRET": self.service_client_secret,
            "BOX_JWT_PRIVATE_KEY": self.jwt_private_key,
            "BOX_JWT_PASSPHRASE": self.jwt_passphrase,
        }
        missing = sorted(name for name, value in required.items() if not value)
        if missing:
            raise ConfigurationError("Missing required values for " + ", ".join(missing))

    def require_user_oauth(self) -> None:
        """Raise ConfigurationError when the user OAuth app is not configured."""
        missing = [
            name
            for name, value in (
                ("BOX_CLIENT_ID", self.client_id),
                ("BOX_CLIENT_SECRET", self.client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError("Missing required values for " + ", ".join(missing))


_box_settings: BoxSettings | None = None


def get_box_settings() -> BoxSettings:
    """Return the process-wide settings loaded from the environment."""
    global _box_settings
    if _box_settings is None:
        _box_settings = BoxSettings.from_env()
        logger.debug(
            "Box settings loaded",
            enterprise_id=_box_settings.enterprise_id or "(unset)",
            http_timeout=_box_settings.http_timeout,
        )
    return _box_settings
