from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from watchpost_core.api.models import ApiResponse, ok
from watchpost_core.auth import require_user
from watchpost_core.db.users import UserRow
from watchpost_core.permissions import is_super_admin
from watchpost_core.services import users as user_service

router = APIRouter(tags=["users"])


class User(BaseModel):
    userid: int
    username: str | None = None
    name: str | None = None
    surname: str | None = None
    roleid: int | None = None
    fullname: str


@router.get("/users", response_model=ApiResponse[list[User]], response_model_exclude_none=True)
async def users_get(
    request: Request,
    userids: list[int] | None = Query(default=None),  # noqa: B008
    output: list[str] | None = Query(default=None),  # noqa: B008
    user: UserRow = Depends(require_user),  # noqa: B008
) -> ApiResponse[list[User]]:
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")

    # Regular users only see themselves.
    if not is_super_admin(user):
        userids = [user.userid]

    records = user_service.get_users(db_path, userids=userids, output=output)
    full = {
        u["userid"]: user_service.get_user_fullname(u)
        for u in user_service.get_users(db_path, userids=[r["userid"] for r in records])
    }
    return ok([User(**r, fullname=full.get(r["userid"], "")) for r in records])
