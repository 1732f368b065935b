from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.staticfiles import StaticFiles

from watchpost_core import __version__
from watchpost_core.api.models import fail
from watchpost_core.api.v1.router import router as v1_router
from watchpost_core.auth import require_user
from watchpost_core.config import ensure_install_token, load_core_config, resolve_configured_paths
from watchpost_core.db import resolve_db_path
from watchpost_core.db.migrate import apply_migrations
from watchpost_core.home import ensure_watchpost_layout, resolve_watchpost_home
from watchpost_core.ui.partials import STATIC_DIR as UI_STATIC_DIR
from watchpost_core.ui.router import router as ui_router

logger = logging.getLogger(__name__)


def _status_to_code(status_code: int) -> str:
    if status_code == 401:
        return "unauthorized"
    if status_code == 403:
        return "forbidden"
    if status_code == 404:
        return "not_found"
    if status_code == 409:
        return "conflict"
    if status_code == 422:
        return "validation_error"
    if 400 <= status_code < 500:
        return "client_error"
    return "server_error"


def create_app() -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        home = resolve_watchpost_home()
        paths = ensure_watchpost_layout(home)
        config = load_core_config(paths)
        paths = resolve_configured_paths(paths, config)
        config = ensure_install_token(paths, config)

        log_path = paths.logs_dir / "core.log"
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(logging.INFO)
        # Avoid adding duplicate handlers if reloaded
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(file_handler)

        logger.info("WatchPost Console starting up")
        logger.info("Logs directory: %s", paths.logs_dir)

        db_path = resolve_db_path(paths)
        apply_migrations(db_path)

        app.state.watchpost_home = home
        app.state.watchpost_paths = paths
        app.state.watchpost_config = config
        app.state.db_path = db_path

        yield

        logger.info("WatchPost Console shutting down")

    app = FastAPI(title="WatchPost Console", version=__version__, lifespan=_lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s - %s", request.method, request.url.path, response.status_code)
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=fail(
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=str(exc.detail),
                details=getattr(exc, "messages", None),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=fail(code="internal_error", message="Internal server error").model_dump(
                mode="json"
            ),
        )

    app.include_router(v1_router, dependencies=[Depends(require_user)])

    # Server-rendered UI.
    if UI_STATIC_DIR.is_dir():
        app.mount(
            "/ui/static",
            StaticFiles(directory=str(UI_STATIC_DIR)),
            name="ui-static",
        )
    else:
        logger.warning(
            "UI static directory is missing (%s); /ui/static will not be served",
            UI_STATIC_DIR,
        )
    app.include_router(ui_router)

    @app.get("/")
    async def root() -> RedirectResponse:
        return RedirectResponse(url="/ui/user/tokens", status_code=302)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
