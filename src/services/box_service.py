"""Box portal service: credential selection, search and content access.

Every read falls back to the service account when the caller has no user
token, except download: a download must run with the user's own permissions
and never with a substituted identity.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from config.settings import BoxSettings
from connectors.box.client import SERVICE_USER_FIELDS, BoxClient
from connectors.box.errors import AuthenticationError
from connectors.box.service_auth import ServiceTokenProvider
from models.search import FilterSpec
from services.search_query import translate
from utils.cache import TTLCache
from utils.logging_config import get_logger, token_suffix

logger = get_logger(__name__)


def normalize_folder_id(folder_id: Optional[str]) -> str:
    """Strip the front end's ``d_`` prefix; an empty id means the root folder."""
    return (folder_id or "").removeprefix("d_") or "0"


class BoxService:
    """Operations behind the portal's /api/files routes."""

    def __init__(
        self,
        settings: BoxSettings,
        client: BoxClient,
        token_provider: ServiceTokenProvider,
        folder_cache: TTLCache,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.token_provider = token_provider
        self.folder_cache = folder_cache
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Credential selection
    # ------------------------------------------------------------------

    async def resolve_token(self, user_token: Optional[str]) -> str:
        """The user's token unchanged when present, otherwise the service token."""
        if user_token:
            return user_token
        return await self.token_provider.get_access_token()

    @staticmethod
    def require_user_token(user_token: Optional[str]) -> str:
        if not user_token:
            raise AuthenticationError("User authentication is required to download files")
        return user_token

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, filters: FilterSpec, user_token: Optional[str] = None) -> Dict[str, Any]:
        """Run a Box search; results are passed through as Box filtered them."""
        params = translate(filters, now=self._now(), enterprise_id=self.settings.enterprise_id)
        logger.info("Box search", params=params)

        token = await self.resolve_token(user_token)
        data = await self.client.search(params, token)
        entries = data.get("entries") or []
        return {
            **data,
            "entries": entries,
            "total_count": data.get("total_count") or len(entries),
        }

    # ------------------------------------------------------------------
    # Content access
    # ------------------------------------------------------------------

    async def list_folder_items(
        self, folder_id: Optional[str], user_token: Optional[str] = None
    ) -> Dict[str, Any]:
        target = normalize_folder_id(folder_id)
        token = await self.resolve_token(user_token)
        result = await self.client.list_folder_items(target, token)
        logger.info("Folder listed", folder_id=target, count=len(result["entries"]))
        return result

    async def get_file_metadata(self, file_id: str, user_token: Optional[str] = None) -> Dict[str, Any]:
        token = await self.resolve_token(user_token)
        return await self.client.get_file(file_id, token)

    async def get_folder_info(
        self, folder_id: Optional[str], user_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """Folder details, cached per folder and token for rapid navigation."""
        target = folder_id or "0"
        token = await self.resolve_token(user_token)

        cache_key = f"folderInfo_{target}_{token_suffix(token)}"
        cached = self.folder_cache.get(cache_key)
        if cached is not None:
            logger.debug("Serving folder info from cache", folder_id=target)
            return cached

        info = await self.client.get_folder(target, token)
        self.folder_cache.set(cache_key, info, ttl=self.settings.folder_info_cache_ttl)
        return info

    async def get_preview_link(self, file_id: str, user_token: Optional[str] = None) -> str:
        token = await self.resolve_token(user_token)
        url = await self.client.get_embed_link(file_id, token)
        logger.info("Preview link generated", file_id=file_id)
        return url

    async def get_download_url(self, file_id: str, user_token: Optional[str]) -> str:
        token = self.require_user_token(user_token)
        logger.info("Download requested", file_id=file_id, user_token_tail=token_suffix(token))
        return await self.client.get_download_location(file_id, token)

    # ------------------------------------------------------------------
    # Metadata templates / account
    # ------------------------------------------------------------------

    async def list_metadata_templates(self, scope: str = "enterprise") -> list:
        # Template definitions are read as the service account; external
        # users usually cannot list enterprise templates.
        token = await self.resolve_token(None)
        return await self.client.list_metadata_templates(scope, token)

    async def get_metadata_template_schema(self, scope: str, template_key: str) -> Dict[str, Any]:
        token = await self.resolve_token(None)
        return await self.client.get_metadata_template_schema(scope, template_key, token)

    async def check_service_account(self, user_token: Optional[str] = None) -> Dict[str, Any]:
        token = await self.resolve_token(user_token)
        return await self.client.get_current_user(token, fields=SERVICE_USER_FIELDS)


def build_box_service(settings: BoxSettings) -> BoxService:
    """Wire the service with its process-wide caches and HTTP client."""
    token_cache = TTLCache()
    folder_cache = TTLCache(default_ttl=settings.folder_info_cache_ttl)
    return BoxService(
        settings=settings,
        client=BoxClient(timeout=settings.http_timeout),
        token_provider=ServiceTokenProvider(settings, token_cache),
        folder_cache=folder_cache,
    )
