"""Thin async wrapper around the Box REST API.

Every method takes the bearer token to use; choosing between the user's
token and the service account is the caller's job (see services.box_service).
"""

from typing import Any, Dict, Optional

import httpx

from config.settings import BOX_API_BASE
from connectors.box.errors import ForbiddenError, NotFoundCondition, UpstreamError
from utils.logging_config import get_logger

logger = get_logger(__name__)

FOLDER_ITEM_FIELDS = "id,name,size,modified_at,type,owned_by,shared_link,item_status,tags"
FILE_METADATA_FIELDS = (
    "name,size,modified_at,created_at,extension,sha1,description,owned_by,shared_link,parent"
)
FOLDER_INFO_FIELDS = "id,name,size,created_at,modified_at,item_collection,owned_by"
SERVICE_USER_FIELDS = (
    "id,name,login,role,address,avatar_url,created_at,modified_at,language,timezone,"
    "space_amount,space_used,max_upload_size,status,job_title,phone"
)
FOLDER_ITEMS_LIMIT = 1000


def raise_for_upstream(resp: httpx.Response, action: str) -> None:
    """Translate a non-2xx Box answer into UpstreamError / ForbiddenError."""
    if resp.is_success:
        return
    try:
        detail = resp.json()
    except ValueError:
        detail = resp.text
    message = f"Box API error while {action} ({resp.status_code})"
    if isinstance(detail, dict) and detail.get("message"):
        message = f"{message}: {detail['message']}"
    logger.error("Box API call failed", action=action, status_code=resp.status_code, detail=detail)
    if resp.status_code == 403:
        raise ForbiddenError(message, detail)
    raise UpstreamError(message, resp.status_code, detail)


class BoxClient:
    """Box API client sharing one httpx connection pool."""

    def __init__(
        self,
        timeout: float = 30.0,
        base_url: str = BOX_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Folders and files
    # ------------------------------------------------------------------

    async def list_folder_items(self, folder_id: str, token: str) -> Dict[str, Any]:
        """First page (up to 1000 entries) of a folder's children."""
        data = await self._get_json(
            f"/folders/{folder_id}/items",
            token,
            action="listing folder items",
            params={"fields": FOLDER_ITEM_FIELDS, "limit": FOLDER_ITEMS_LIMIT, "offset": 0},
        )
        entries = data.get("entries", [])
        logger.debug("Folder items fetched", folder_id=folder_id, count=len(entries))
        return {"entries": entries}

    async def get_file(self, file_id: str, token: str) -> Dict[str, Any]:
        return await self._get_json(
            f"/files/{file_id}",
            token,
            action="fetching file metadata",
            params={"fields": FILE_METADATA_FIELDS},
        )

    async def get_folder(self, folder_id: str, token: str) -> Dict[str, Any]:
        return await self._get_json(
            f"/folders/{folder_id}",
            token,
            action="fetching folder info",
            params={"fields": FOLDER_INFO_FIELDS},
        )

    async def get_embed_link(self, file_id: str, token: str) -> str:
        """Return the expiring embed URL used for previews."""
        data = await self._get_json(
            f"/files/{file_id}",
            token,
            action="fetching preview link",
            params={"fields": "expiring_embed_link"},
        )
        link = data.get("expiring_embed_link") or {}
        url = link.get("url") if isinstance(link, dict) else None
        if not url:
            raise NotFoundCondition("No preview available for this file")
        return url

    async def get_download_location(self, file_id: str, token: str) -> str:
        """Return the Location the content endpoint redirects to, without following it."""
        resp = await self._send(
            "fetching download location",
            f"/files/{file_id}/content",
            headers=self._auth(token),
            follow_redirects=False,
        )
        if resp.status_code in (301, 302, 303, 307) and resp.headers.get("location"):
            return resp.headers["location"]
        raise_for_upstream(resp, "fetching download location")
        # 2xx with inline content: Box did not hand out a download location
        raise NotFoundCondition("Download location not found")

    # ------------------------------------------------------------------
    # Search and metadata templates
    # ------------------------------------------------------------------

    async def search(self, params: Dict[str, str], token: str) -> Dict[str, Any]:
        return await self._get_json("/search", token, action="searching", params=params)

    async def list_metadata_templates(self, scope: str, token: str) -> list:
        data = await self._get_json(
            f"/metadata_templates/{scope}", token, action="listing metadata templates"
        )
        return data.get("entries", [])

    async def get_metadata_template_schema(
        self, scope: str, template_key: str, token: str
    ) -> Dict[str, Any]:
        return await self._get_json(
            f"/metadata_templates/{scope}/{template_key}/schema",
            token,
            action=f"fetching schema of template {template_key}",
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_current_user(self, token: str, fields: Optional[str] = None) -> Dict[str, Any]:
        params = {"fields": fields} if fields else None
        return await self._get_json("/users/me", token, action="fetching user", params=params)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _auth(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def _get_json(
        self,
        path: str,
        token: str,
        *,
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        resp = await self._send(action, path, headers=self._auth(token), params=params)
        raise_for_upstream(resp, action)
        return resp.json()

    async def _send(self, action: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.get(path, **kwargs)
        except httpx.TransportError as exc:
            logger.error("Box API unreachable", action=action, error=str(exc))
            raise UpstreamError(f"Box API unreachable while {action}: {exc}", 502) from exc
