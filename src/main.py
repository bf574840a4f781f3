# Configure structured logging before anything else logs
from utils.logging_config import configure_from_env, get_logger

configure_from_env()
logger = get_logger(__name__)

import os
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse
from starlette.routing import Route

from api.auth import routes as auth_routes
from api.auth.routes import require_auth
from api.files import routes as files_routes
from config.settings import (
    FRONTEND_URL,
    PORT,
    SESSION_MAX_AGE,
    SESSION_SECRET,
    BoxSettings,
    get_box_settings,
    is_dev_mode,
)
from connectors.box.errors import ConfigurationError
from connectors.box.oauth import BoxOAuth
from services.box_service import BoxService, build_box_service


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def legacy_files_redirect(request: Request) -> RedirectResponse:
    """/files[/{folder_id}] moved under /api."""
    folder_id = request.path_params.get("folder_id")
    target = f"/api/files/{folder_id}" if folder_id else "/api/files"
    return RedirectResponse(target, status_code=301)


def build_routes(box_service: BoxService, oauth: BoxOAuth, frontend_url: str) -> list[Route]:
    """Route table with services injected via partial."""

    def files_route(path: str, handler) -> Route:
        return Route(
            f"/api/files{path}",
            require_auth(partial(handler, box_service=box_service, oauth=oauth)),
            methods=["GET"],
        )

    return [
        Route("/health", health_check, methods=["GET"]),
        # Authentication
        Route("/api/auth/login", partial(auth_routes.login, oauth=oauth), methods=["GET"]),
        Route(
            "/api/auth/callback",
            partial(auth_routes.callback, oauth=oauth, frontend_url=frontend_url),
            methods=["GET"],
        ),
        Route("/api/auth/status", auth_routes.status, methods=["GET"]),
        Route("/api/auth/logout", auth_routes.logout, methods=["GET"]),
        # Files; fixed prefixes must precede the catch-all folder route
        files_route("/search", files_routes.search_files),
        files_route("/metadata/templates/{scope}", files_routes.get_metadata_templates),
        files_route(
            "/metadata/templates/{scope}/{template_key}/schema",
            files_routes.get_metadata_template_schema,
        ),
        files_route("/folderinfo", files_routes.get_folder_details),
        files_route("/folderinfo/{folder_id}", files_routes.get_folder_details),
        files_route("/preview/{file_id}", files_routes.get_preview),
        files_route("/download/{file_id}", files_routes.download_file),
        files_route("/metadata/{file_id}", files_routes.get_file_metadata),
        files_route("/permissions/check", files_routes.check_permissions),
        files_route("", files_routes.get_folder_items),
        files_route("/{folder_id}", files_routes.get_folder_items),
        # Legacy paths
        Route("/files", legacy_files_redirect, methods=["GET"]),
        Route("/files/{folder_id}", legacy_files_redirect, methods=["GET"]),
    ]


def create_app(
    settings: Optional[BoxSettings] = None,
    box_service: Optional[BoxService] = None,
    oauth: Optional[BoxOAuth] = None,
    session_secret: str = SESSION_SECRET,
    frontend_url: str = FRONTEND_URL,
    https_only: Optional[bool] = None,
) -> Starlette:
    """Create and configure the Starlette application."""
    settings = settings or get_box_settings()
    box_service = box_service or build_box_service(settings)
    oauth = oauth or BoxOAuth(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info(
            "Box portal starting up",
            enterprise_id=settings.enterprise_id or "(unset)",
            dev_mode=is_dev_mode(),
        )
        # Missing credentials only fail the requests that need them
        for check in (settings.require_service_credentials, settings.require_user_oauth):
            try:
                check()
            except ConfigurationError as exc:
                logger.warning("Box credentials incomplete", error=str(exc))
        yield
        logger.info("Box portal shutting down")
        await box_service.client.close()

    return Starlette(
        debug=is_dev_mode(),
        routes=build_routes(box_service, oauth, frontend_url),
        middleware=[
            Middleware(
                SessionMiddleware,
                secret_key=session_secret,
                session_cookie="box_portal.sid",
                max_age=SESSION_MAX_AGE,
                https_only=(not is_dev_mode()) if https_only is None else https_only,
            )
        ],
        lifespan=lifespan,
    )


if __name__ == "__main__":
    import uvicorn

    access_log = os.getenv("ACCESS_LOG", "true").lower() == "true"

    uvicorn.run(
        create_app(),
        workers=1,
        host="0.0.0.0",
        port=PORT,
        reload=False,
        access_log=access_log,
    )
