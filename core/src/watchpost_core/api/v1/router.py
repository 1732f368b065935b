from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from watchpost_core import __version__
from watchpost_core.api.models import ApiResponse, ok
from watchpost_core.api.v1.tokens import router as tokens_router
from watchpost_core.api.v1.users import router as users_router
from watchpost_core.auth import require_user
from watchpost_core.db.users import UserRow

router = APIRouter(prefix="/v1", tags=["v1"])

router.include_router(tokens_router)
router.include_router(users_router)


class SystemInfo(BaseModel):
    version: str
    watchpost_home: str
    timezone: str
    user: str
    paths: dict[str, str]


@router.get("/ping", response_model=ApiResponse[dict[str, bool]])
async def ping() -> ApiResponse[dict[str, bool]]:
    return ok({"pong": True})


@router.get("/system/info", response_model=ApiResponse[SystemInfo])
async def system_info(
    request: Request, user: UserRow = Depends(require_user)  # noqa: B008
) -> ApiResponse[SystemInfo]:
    # Runtime identity and resolved paths only; no secrets.
    home = getattr(request.app.state, "watchpost_home", None)
    paths = getattr(request.app.state, "watchpost_paths", None)
    config = getattr(request.app.state, "watchpost_config", None)

    info = SystemInfo(
        version=__version__,
        watchpost_home=str(home) if home is not None else "",
        timezone=config.ui.timezone if config is not None else "",
        user=user.username,
        paths={
            "db_dir": str(paths.db_dir) if paths is not None else "",
            "logs_dir": str(paths.logs_dir) if paths is not None else "",
            "config_dir": str(paths.config_dir) if paths is not None else "",
            "tmp_dir": str(paths.tmp_dir) if paths is not None else "",
        },
    )
    return ok(info)
