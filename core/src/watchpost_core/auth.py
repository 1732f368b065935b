from __future__ import annotations

import hmac
import logging
from typing import Final

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from watchpost_core.db import ids
from watchpost_core.db import tokens as tokens_db
from watchpost_core.db import users as users_db
from watchpost_core.db.users import UserRow
from watchpost_core.permissions import GUEST_USERNAME, is_guest

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER: Final[str] = "Authorization"
TOKEN_HEADER: Final[str] = "X-WatchPost-Token"
TOKEN_COOKIE: Final[str] = "wp_token"
SUPER_ADMIN_USERID: Final[int] = 1

_bearer_scheme = HTTPBearer(auto_error=False)
_token_header_scheme = APIKeyHeader(name=TOKEN_HEADER, auto_error=False)


def extract_token_from_request(request: Request) -> str | None:
    header_token = request.headers.get(TOKEN_HEADER)
    if header_token:
        return header_token

    cookie_token = request.cookies.get(TOKEN_COOKIE)
    if cookie_token:
        return cookie_token

    auth = request.headers.get(AUTHORIZATION_HEADER)
    if not auth:
        return None

    prefix = "Bearer "
    if auth.startswith(prefix):
        return auth[len(prefix) :].strip() or None
    return None


def _get_db_path(request: Request):
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")
    return db_path


def _install_token(request: Request) -> str | None:
    expected = getattr(getattr(request.app.state, "watchpost_config", None), "auth", None)
    return getattr(expected, "install_token", None)


def resolve_user_for_token(request: Request, provided: str) -> UserRow:
    """Map a presented token to its user, or raise 401."""

    db_path = _get_db_path(request)

    install_token = _install_token(request)
    if install_token and hmac.compare_digest(provided, install_token):
        user = users_db.get_user(db_path, userid=SUPER_ADMIN_USERID)
        if user is None:
            raise HTTPException(status_code=500, detail="Super admin user is missing")
        return user

    try:
        digest = ids.token_hash(provided)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    token = tokens_db.find_active_token_by_hash(db_path, token_hash=digest)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = users_db.get_user(db_path, userid=token.userid)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    tokens_db.touch_token(db_path, tokenid=token.tokenid)
    return user


async def get_current_user(request: Request) -> UserRow:
    """Resolve the caller; requests without any token act as the guest user."""

    cached = getattr(request.state, "user", None)
    if cached is not None:
        return cached

    provided = extract_token_from_request(request)
    if provided:
        user = resolve_user_for_token(request, provided)
    else:
        user = users_db.get_user_by_username(_get_db_path(request), username=GUEST_USERNAME)
        if user is None:
            raise HTTPException(status_code=401, detail="Missing token")

    request.state.user = user
    return user


async def require_user(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),  # noqa: B008
    header_token: str | None = Security(_token_header_scheme),  # noqa: B008
) -> UserRow:
    """Require an authenticated, non-guest caller.

    Accepts either:
    - Authorization: Bearer <token>
    - X-WatchPost-Token: <token>
    - the UI login cookie
    """

    provided = header_token
    if not provided and bearer is not None:
        provided = bearer.credentials
    if not provided:
        provided = request.cookies.get(TOKEN_COOKIE)

    if not provided:
        raise HTTPException(status_code=401, detail="Missing token")

    user = resolve_user_for_token(request, provided)
    if is_guest(user):
        raise HTTPException(status_code=401, detail="Invalid token")

    request.state.user = user
    return user
