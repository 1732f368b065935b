from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from watchpost_core.api.models import ApiResponse, ServiceFailure, ok
from watchpost_core.auth import require_user
from watchpost_core.db.tokens import TOKEN_STATUS_ENABLED, TokenRow
from watchpost_core.db.users import UserRow
from watchpost_core.messages import MessageCollector, get_messages
from watchpost_core.permissions import ACTIONS_MANAGE_API_TOKENS, has_capability
from watchpost_core.services import tokens as token_service

router = APIRouter(tags=["tokens"])


class Token(BaseModel):
    tokenid: int
    name: str
    description: str
    userid: int
    status: int
    expires_at: int
    created_at: int
    creator_userid: int | None
    lastaccess: int


def _to_token(row: TokenRow) -> Token:
    return Token(
        tokenid=row.tokenid,
        name=row.name,
        description=row.description,
        userid=row.userid,
        status=row.status,
        expires_at=row.expires_at,
        created_at=row.created_at,
        creator_userid=row.creator_userid,
        lastaccess=row.lastaccess,
    )


class TokenCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str = ""
    userid: int | None = None
    status: int = Field(default=TOKEN_STATUS_ENABLED, ge=0, le=1)
    expires_at: int = Field(default=0, ge=0)


class TokenCreateResponse(BaseModel):
    tokenids: list[int]


class TokenGenerateRequest(BaseModel):
    tokenids: list[int] = Field(min_length=1)


class GeneratedToken(BaseModel):
    tokenid: int
    token: str


def _get_db_path(request: Request):
    db_path = getattr(request.app.state, "db_path", None)
    if db_path is None:
        raise HTTPException(status_code=500, detail="DB not initialized")
    return db_path


def _require_token_manager(user: UserRow) -> None:
    if not has_capability(user, ACTIONS_MANAGE_API_TOKENS):
        raise HTTPException(status_code=403, detail="No permissions to manage API tokens")


@router.get("/tokens", response_model=ApiResponse[list[Token]])
async def tokens_list(
    request: Request,
    userid: int | None = Query(default=None, description="Only tokens owned by this user"),
    user: UserRow = Depends(require_user),  # noqa: B008
) -> ApiResponse[list[Token]]:
    _require_token_manager(user)
    rows = token_service.list_tokens(_get_db_path(request), caller=user, userid=userid)
    return ok([_to_token(r) for r in rows])


@router.post("/tokens", response_model=ApiResponse[TokenCreateResponse])
async def tokens_create(
    request: Request,
    payload: list[TokenCreateRequest],
    user: UserRow = Depends(require_user),  # noqa: B008
    messages: MessageCollector = Depends(get_messages),  # noqa: B008
) -> ApiResponse[TokenCreateResponse]:
    _require_token_manager(user)

    records = [p.model_dump(exclude_none=True) for p in payload]
    result = token_service.create_tokens(
        _get_db_path(request), caller=user, tokens=records, messages=messages
    )
    if result is None:
        raise ServiceFailure("Cannot add API token", messages)
    return ok(TokenCreateResponse(tokenids=result["tokenids"]))


@router.post("/tokens/generate", response_model=ApiResponse[list[GeneratedToken]])
async def tokens_generate(
    request: Request,
    payload: TokenGenerateRequest,
    user: UserRow = Depends(require_user),  # noqa: B008
    messages: MessageCollector = Depends(get_messages),  # noqa: B008
) -> ApiResponse[list[GeneratedToken]]:
    _require_token_manager(user)

    generated = token_service.generate_tokens(
        _get_db_path(request), caller=user, tokenids=payload.tokenids, messages=messages
    )
    if generated is None:
        raise ServiceFailure("Cannot generate API token", messages)
    return ok([GeneratedToken(**g) for g in generated])
