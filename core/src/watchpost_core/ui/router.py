from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.responses import Response

from watchpost_core.auth import TOKEN_COOKIE, get_current_user, resolve_user_for_token
from watchpost_core.config import CoreConfig
from watchpost_core.db.tokens import TOKEN_STATUS_ENABLED
from watchpost_core.db.users import UserRow
from watchpost_core.messages import MessageCollector, get_messages
from watchpost_core.permissions import (
    GUEST_USERNAME,
    UI_CONFIGURATION_ACTIONS,
    has_capability,
    is_guest,
    is_super_admin,
)
from watchpost_core.services import tokens as token_service
from watchpost_core.services import users as user_service
from watchpost_core.timeunits import format_timestamp
from watchpost_core.ui import token_create
from watchpost_core.ui.operations import OperationsSourceError
from watchpost_core.ui.partials import render_operations_table, templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ui", tags=["ui"])


def _flash_from_request(request: Request) -> dict[str, Any] | None:
    msg = request.query_params.get("msg")
    if not msg:
        return None
    kind = request.query_params.get("kind") or ""
    return {"message": msg, "kind": kind}


def _get_db_path(request: Request) -> Any:
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")
    return db_path


def _get_config(request: Request) -> CoreConfig:
    config = getattr(request.app.state, "watchpost_config", None)
    if config is None:
        raise HTTPException(status_code=500, detail="Config not initialized")
    return config


def _deny(user: UserRow, what: str) -> HTTPException:
    logger.warning("Access denied for user %s: %s", user.username, what)
    return HTTPException(status_code=403, detail="Access denied")


def _require_token_manager(user: UserRow, what: str) -> None:
    if not token_create.check_permissions(user):
        raise _deny(user, what)


@router.get("/login", response_class=HTMLResponse)
async def ui_login(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "login.html",
        {"title": "Login • WatchPost", "hide_nav": True, "flash": _flash_from_request(request)},
    )


@router.post("/login", response_model=None)
async def ui_login_post(request: Request, token: str = Form(default="")) -> Response:
    token = (token or "").strip()

    error = None
    if not token:
        error, status_code = "Missing token", 400
    else:
        try:
            user = resolve_user_for_token(request, token)
        except HTTPException:
            user = None
        if user is None or is_guest(user):
            error, status_code = "Invalid token", 401

    if error is not None:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"title": "Login • WatchPost", "hide_nav": True, "error": error},
            status_code=status_code,
        )

    logger.info("User %s logged in to the UI", user.username)
    resp = RedirectResponse(url="/ui/user/tokens?msg=Logged+in&kind=ok", status_code=302)
    resp.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=60 * 60 * 24 * _get_config(request).auth.session_max_age_days,
    )
    return resp


@router.post("/logout")
async def ui_logout() -> RedirectResponse:
    resp = RedirectResponse(url="/ui/login?msg=Logged+out", status_code=302)
    resp.delete_cookie(TOKEN_COOKIE)
    return resp


def _token_items(request: Request, rows) -> list[dict[str, Any]]:
    tz = _get_config(request).ui.tzinfo
    db_path = _get_db_path(request)
    owners = {
        u["userid"]: user_service.get_user_fullname(u)
        for u in user_service.get_users(db_path, userids={r.userid for r in rows})
    }
    now = int(time.time())
    return [
        {
            "tokenid": r.tokenid,
            "name": r.name,
            "description": r.description,
            "user": owners.get(r.userid, ""),
            "expires_at": "Never" if r.expires_at == 0 else format_timestamp(r.expires_at, tz),
            "expired": r.is_expired(now),
            "status": "Enabled" if r.status == TOKEN_STATUS_ENABLED else "Disabled",
            "lastaccess": format_timestamp(r.lastaccess, tz) if r.lastaccess else "Never",
        }
        for r in rows
    ]


@router.get("/tokens", response_class=HTMLResponse)
async def ui_tokens_list(
    request: Request, user: UserRow = Depends(get_current_user)  # noqa: B008
) -> HTMLResponse:
    _require_token_manager(user, "token.view")
    rows = token_service.list_tokens(_get_db_path(request), caller=user)
    return templates.TemplateResponse(
        request,
        "tokens_list.html",
        {
            "title": "API tokens • WatchPost",
            "active": "token.view",
            "flash": _flash_from_request(request),
            "items": _token_items(request, rows),
            "show_user": True,
            "action_src": "token.edit",
        },
    )


@router.get("/user/tokens", response_class=HTMLResponse)
async def ui_user_tokens_list(
    request: Request, user: UserRow = Depends(get_current_user)  # noqa: B008
) -> HTMLResponse:
    _require_token_manager(user, "user.token.view")
    rows = token_service.list_tokens(_get_db_path(request), caller=user, userid=user.userid)
    return templates.TemplateResponse(
        request,
        "tokens_list.html",
        {
            "title": "User API tokens • WatchPost",
            "active": "user.token.view",
            "flash": _flash_from_request(request),
            "items": _token_items(request, rows),
            "show_user": False,
            "action_src": "user.token.edit",
        },
    )


@router.get("/token/edit", response_class=HTMLResponse)
async def ui_token_edit(
    request: Request, user: UserRow = Depends(get_current_user)  # noqa: B008
) -> HTMLResponse:
    _require_token_manager(user, "token.edit")

    action_src = request.query_params.get("action_src") or "user.token.edit"
    if action_src not in token_create.ACTION_SRC_VALUES:
        action_src = "user.token.edit"
    action_dst = "token.view" if action_src == "token.edit" else "user.token.view"

    users: list[dict[str, Any]] = [user.as_dict()]
    if action_src == "token.edit" and is_super_admin(user):
        users = [
            {**u, "fullname": user_service.get_user_fullname(u)}
            for u in user_service.get_users(_get_db_path(request))
            if u.get("username") != GUEST_USERNAME
        ]
    else:
        users = [{**users[0], "fullname": user_service.get_user_fullname(users[0])}]

    return templates.TemplateResponse(
        request,
        "token_edit.html",
        {
            "title": "New API token • WatchPost",
            "active": action_dst,
            "users": users,
            "userid": user.userid,
            "action_src": action_src,
            "action_dst": action_dst,
            "timezone": _get_config(request).ui.timezone,
        },
    )


@router.post("/token/create")
async def ui_token_create(
    request: Request,
    user: UserRow = Depends(get_current_user),  # noqa: B008
    messages: MessageCollector = Depends(get_messages),  # noqa: B008
) -> JSONResponse:
    form = await request.form()
    config = _get_config(request)

    token_input, errors = token_create.check_input(form, tz=config.ui.tzinfo)
    if token_input is None:
        return JSONResponse(token_create.validation_error(errors))

    _require_token_manager(user, "token.create")

    output = token_create.do_action(
        _get_db_path(request),
        caller=user,
        token_input=token_input,
        messages=messages,
        tz=config.ui.tzinfo,
    )
    return JSONResponse(output)


@router.post("/action/operations", response_class=HTMLResponse)
async def ui_action_operations(
    request: Request, user: UserRow = Depends(get_current_user)  # noqa: B008
) -> HTMLResponse:
    if is_guest(user) or not has_capability(user, UI_CONFIGURATION_ACTIONS):
        raise _deny(user, "action.operations")

    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from None
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be an object")

    try:
        html = render_operations_table(data)
    except OperationsSourceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return HTMLResponse(html)

