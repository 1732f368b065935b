"""Token creation handler behind `POST /ui/token/create`.

The handler runs in three steps: `check_input`, `check_permissions` and
`do_action`. Each produces its own outcome: a validation error payload, an
access denial, or the success/error payload of the creation itself.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Container, Mapping
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from watchpost_core.db.tokens import TOKEN_STATUS_DISABLED, TOKEN_STATUS_ENABLED
from watchpost_core.db.users import UserRow
from watchpost_core.messages import MessageCollector
from watchpost_core.permissions import ACTIONS_MANAGE_API_TOKENS, has_capability, is_guest
from watchpost_core.services import tokens as token_service
from watchpost_core.services import users as user_service
from watchpost_core.timeunits import parse_range_time
from watchpost_core.ui.partials import render_token_view

logger = logging.getLogger(__name__)

TITLE_TOKEN_ADDED = "API token added"
TITLE_CANNOT_ADD = "Cannot add API token"

ACTION_SRC_VALUES = ("token.edit", "user.token.edit")
ACTION_DST_VALUES = ("token.view", "user.token.view")
STATUS_VALUES = {"enabled": TOKEN_STATUS_ENABLED, "disabled": TOKEN_STATUS_DISABLED}


@dataclass(frozen=True)
class TokenCreateInput:
    name: str
    description: str
    userid: int
    expires_state: bool
    expires_at: int
    status: int
    action_src: str
    action_dst: str


def _field(form: Mapping[str, Any], key: str) -> str | None:
    value = form.get(key)
    if value is None:
        return None
    return str(value)


def _check_in(
    form: Mapping[str, Any], key: str, allowed: Container[str], errors: list[str]
) -> str | None:
    value = _field(form, key)
    if value is None:
        errors.append(f'Field "{key}" is mandatory.')
        return None
    if value not in allowed:
        errors.append(f'Incorrect value "{value}" for "{key}" field.')
        return None
    return value


def check_input(form: Mapping[str, Any], *, tz: tzinfo) -> tuple[TokenCreateInput | None, list[str]]:
    """Validate the submitted form; returns the input or the list of problems."""

    errors: list[str] = []

    name = _field(form, "name")
    if name is None:
        errors.append('Field "name" is mandatory.')
    elif not name.strip():
        errors.append('Incorrect value for field "name": cannot be empty.')

    description = _field(form, "description") or ""

    userid: int | None = None
    raw_userid = _field(form, "userid")
    if raw_userid is None or not raw_userid.strip():
        errors.append('Field "userid" is mandatory.')
    elif not raw_userid.strip().isdigit():
        errors.append('Incorrect value for field "userid": a number is expected.')
    else:
        userid = int(raw_userid.strip())

    expires_state = _check_in(form, "expires_state", ("0", "1"), errors)

    expires_at = 0
    if expires_state == "1":
        raw_expires_at = _field(form, "expires_at")
        if raw_expires_at is None or not raw_expires_at.strip():
            errors.append('Field "expires_at" is mandatory.')
        else:
            try:
                expires_at = parse_range_time(raw_expires_at, tz)
            except ValueError:
                errors.append('Incorrect value for field "expires_at": a time is expected.')

    status = _check_in(form, "status", STATUS_VALUES, errors)
    action_src = _check_in(form, "action_src", ACTION_SRC_VALUES, errors)
    action_dst = _check_in(form, "action_dst", ACTION_DST_VALUES, errors)

    if errors:
        return None, errors

    return (
        TokenCreateInput(
            name=name.strip(),
            description=description,
            userid=userid,
            expires_state=expires_state == "1",
            expires_at=expires_at,
            status=STATUS_VALUES[status],
            action_src=action_src,
            action_dst=action_dst,
        ),
        [],
    )


def validation_error(messages: list[str]) -> dict[str, Any]:
    return {"error": {"title": TITLE_CANNOT_ADD, "messages": messages}}


def check_permissions(user: UserRow | None) -> bool:
    if is_guest(user):
        return False
    return has_capability(user, ACTIONS_MANAGE_API_TOKENS)


def _resolve_owner(db_path, caller: UserRow, userid: int) -> dict[str, Any]:
    if caller.userid == userid:
        return caller.as_dict()
    users = user_service.get_users(
        db_path, userids=[userid], output=["username", "name", "surname"]
    )
    return users[0] if users else {}


def do_action(
    db_path,
    *,
    caller: UserRow,
    token_input: TokenCreateInput,
    messages: MessageCollector,
    tz: tzinfo,
) -> dict[str, Any]:
    """Create the token, generate its secret and build the response payload."""

    token = {
        "name": token_input.name,
        "description": token_input.description,
        "userid": token_input.userid,
        "status": token_input.status,
        "expires_at": token_input.expires_at if token_input.expires_state else 0,
    }

    result = token_service.create_tokens(db_path, caller=caller, tokens=[token], messages=messages)
    generated = None
    if result is not None:
        generated = token_service.generate_tokens(
            db_path, caller=caller, tokenids=result["tokenids"], messages=messages
        )
        if generated is None:
            token_service.discard_tokens(db_path, caller=caller, tokenids=result["tokenids"])

    if generated is None:
        logger.info("API token %r was not created for user %s", token["name"], token["userid"])
        return {"error": {"title": TITLE_CANNOT_ADD, "messages": messages.drain_texts()}}

    success: dict[str, Any] = {"title": TITLE_TOKEN_ADDED}
    texts = messages.drain_texts()
    if texts:
        success["messages"] = texts

    owner = _resolve_owner(db_path, caller, token["userid"])
    data = {
        "name": token["name"],
        "user": user_service.get_user_fullname(owner),
        "auth_token": generated[0]["token"],
        "expires_at": token["expires_at"],
        "description": token["description"],
        "status": token["status"],
        "action_src": token_input.action_src,
    }

    return {
        "success": success,
        "data": render_token_view(data, tz=tz, now=int(time.time())),
    }
