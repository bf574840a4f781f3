"""Box file REST API route handlers.

Endpoints (all require a logged-in session):
  GET /api/files/search                                        - filtered search
  GET /api/files/metadata/templates/{scope}                    - metadata templates
  GET /api/files/metadata/templates/{scope}/{template_key}/schema
  GET /api/files/folderinfo[/{folder_id}]                      - folder details
  GET /api/files/preview/{file_id}                             - preview embed URL
  GET /api/files/download/{file_id}                            - redirect to content
  GET /api/files/metadata/{file_id}                            - file metadata
  GET /api/files/permissions/check                             - service account info
  GET /api/files[/{folder_id}]                                 - folder items

Handlers receive the BoxService and BoxOAuth through functools.partial.
When Box answers 401 to the session's user token, the token is refreshed
once and the call retried.
"""

from typing import Any, Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from api.auth.routes import refresh_session
from connectors.box.errors import (
    AuthenticationError,
    ConfigurationError,
    ForbiddenError,
    NotFoundCondition,
    UpstreamError,
)
from connectors.box.oauth import BoxOAuth
from services.box_service import BoxService
from services.request_parsing import InvalidFilterError, parse_filter_params
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _json(data, status: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status)


def _error(message: str, status: int = 400) -> JSONResponse:
    return JSONResponse(content={"error": message}, status_code=status)


def _user_token(request: Request):
    return request.session.get("access_token")


async def _with_user_token(
    request: Request,
    oauth: Optional[BoxOAuth],
    operation: Callable[[Optional[str]], Awaitable[Any]],
) -> Any:
    """Run *operation* with the session token, refreshing it once on a Box 401."""
    token = _user_token(request)
    try:
        return await operation(token)
    except UpstreamError as exc:
        if exc.status_code != 401 or not token or oauth is None:
            raise
        refreshed = await refresh_session(request, oauth)
        if not refreshed:
            raise
        return await operation(refreshed)


def _error_response(exc: Exception, action: str) -> JSONResponse:
    """Map the portal error taxonomy onto HTTP statuses."""
    if isinstance(exc, InvalidFilterError):
        return _error(str(exc), 400)
    if isinstance(exc, AuthenticationError):
        return _error(str(exc), 401)
    if isinstance(exc, ForbiddenError):
        return _error("You do not have permission to access this item.", 403)
    if isinstance(exc, NotFoundCondition):
        return _error(str(exc), 404)
    if isinstance(exc, UpstreamError):
        logger.error("Box upstream error", action=action, status_code=exc.status_code, error=exc.message)
        # Box client errors keep their status; server errors and transport failures are 502
        status = exc.status_code if 400 <= exc.status_code < 500 else 502
        return _error(exc.message, status)
    if isinstance(exc, ConfigurationError):
        logger.error("Portal misconfigured", action=action, error=str(exc))
        return _error(str(exc), 500)
    logger.error("Unexpected error", action=action, error=str(exc))
    return _error(str(exc), 500)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

async def search_files(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/search"""
    try:
        filters = parse_filter_params(request.query_params)
        result = await _with_user_token(
            request, oauth, lambda token: box_service.search(filters, token)
        )
        return _json(result)
    except Exception as exc:
        return _error_response(exc, "search")


# ---------------------------------------------------------------------------
# Metadata templates
# ---------------------------------------------------------------------------

async def get_metadata_templates(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/metadata/templates/{scope}"""
    try:
        scope = request.path_params.get("scope", "enterprise")
        return _json(await box_service.list_metadata_templates(scope))
    except Exception as exc:
        return _error_response(exc, "list metadata templates")


async def get_metadata_template_schema(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/metadata/templates/{scope}/{template_key}/schema"""
    try:
        scope = request.path_params["scope"]
        template_key = request.path_params["template_key"]
        return _json(await box_service.get_metadata_template_schema(scope, template_key))
    except Exception as exc:
        return _error_response(exc, "get metadata template schema")


# ---------------------------------------------------------------------------
# Folders and files
# ---------------------------------------------------------------------------

async def get_folder_items(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files[/{folder_id}]"""
    try:
        folder_id = request.path_params.get("folder_id", "")
        result = await _with_user_token(
            request, oauth, lambda token: box_service.list_folder_items(folder_id, token)
        )
        return _json(result)
    except Exception as exc:
        return _error_response(exc, "list folder items")


async def get_folder_details(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/folderinfo[/{folder_id}]"""
    try:
        folder_id = request.path_params.get("folder_id") or "0"
        result = await _with_user_token(
            request, oauth, lambda token: box_service.get_folder_info(folder_id, token)
        )
        return _json(result)
    except Exception as exc:
        return _error_response(exc, "get folder info")


async def get_file_metadata(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/metadata/{file_id}"""
    try:
        file_id = request.path_params["file_id"]
        result = await _with_user_token(
            request, oauth, lambda token: box_service.get_file_metadata(file_id, token)
        )
        return _json(result)
    except Exception as exc:
        return _error_response(exc, "get file metadata")


async def get_preview(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/preview/{file_id}"""
    try:
        file_id = request.path_params["file_id"]
        url = await _with_user_token(
            request, oauth, lambda token: box_service.get_preview_link(file_id, token)
        )
        return _json({"url": url})
    except Exception as exc:
        return _error_response(exc, "get preview link")


async def download_file(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
):
    """GET /api/files/download/{file_id}

    Runs with the session user's token only.
    """
    try:
        file_id = request.path_params["file_id"]
        url = await _with_user_token(
            request, oauth, lambda token: box_service.get_download_url(file_id, token)
        )
        return RedirectResponse(url, status_code=302)
    except Exception as exc:
        return _error_response(exc, "download file")


async def check_permissions(
    request: Request, box_service: BoxService, oauth: Optional[BoxOAuth] = None
) -> JSONResponse:
    """GET /api/files/permissions/check"""
    try:
        result = await _with_user_token(
            request, oauth, lambda token: box_service.check_service_account(token)
        )
        return _json(result)
    except Exception as exc:
        return _error_response(exc, "check permissions")
