"""API token service: creation and secret generation.

Both operations validate everything up front, report problems into the given
`MessageCollector` and return None on failure without touching the database.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from watchpost_core.db import ids
from watchpost_core.db import tokens as tokens_db
from watchpost_core.db import users as users_db
from watchpost_core.db.users import UserRow
from watchpost_core.messages import MessageCollector
from watchpost_core.permissions import GUEST_USERNAME, is_super_admin

logger = logging.getLogger(__name__)

TOKEN_STATUSES = (tokens_db.TOKEN_STATUS_ENABLED, tokens_db.TOKEN_STATUS_DISABLED)
NAME_MAX_LENGTH = 64
DESCRIPTION_MAX_LENGTH = 65535


def _validate_record(
    db_path,
    caller: UserRow,
    index: int,
    record: Mapping[str, Any],
    messages: MessageCollector,
    seen: set[tuple[int, str]],
) -> dict[str, Any] | None:
    path = f"/{index + 1}"

    name = str(record.get("name") or "").strip()
    if not name:
        messages.error(f'Invalid parameter "{path}/name": cannot be empty.')
        return None
    if len(name) > NAME_MAX_LENGTH:
        messages.error(f'Invalid parameter "{path}/name": value is too long.')
        return None

    description = str(record.get("description") or "")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        messages.error(f'Invalid parameter "{path}/description": value is too long.')
        return None

    try:
        userid = int(record.get("userid", caller.userid))
        status = int(record.get("status", tokens_db.TOKEN_STATUS_ENABLED))
        expires_at = int(record.get("expires_at", 0))
    except (TypeError, ValueError):
        messages.error(f'Invalid parameter "{path}": an integer is expected.')
        return None

    if status not in TOKEN_STATUSES:
        messages.error(
            f'Invalid parameter "{path}/status": value must be one of '
            f"{', '.join(str(s) for s in TOKEN_STATUSES)}."
        )
        return None
    if expires_at < 0:
        messages.error(f'Invalid parameter "{path}/expires_at": value must be 0 or greater.')
        return None

    if userid != caller.userid and not is_super_admin(caller):
        messages.error("Only Super admin users can create API tokens for other users.")
        return None

    owner = users_db.get_user(db_path, userid=userid)
    if owner is None:
        messages.error(f'User with ID "{userid}" is not available.')
        return None
    if owner.username == GUEST_USERNAME:
        messages.error(f'API tokens cannot be created for user "{GUEST_USERNAME}".')
        return None

    key = (userid, name)
    if key in seen or name in tokens_db.token_names_for_user(db_path, userid=userid):
        messages.error(f'API token "{name}" already exists for userid "{userid}".')
        return None
    seen.add(key)

    return {
        "name": name,
        "description": description,
        "userid": userid,
        "status": status,
        "expires_at": expires_at,
    }


def create_tokens(
    db_path,
    *,
    caller: UserRow,
    tokens: Iterable[Mapping[str, Any]],
    messages: MessageCollector,
) -> dict[str, list[int]] | None:
    """Create token records; returns {"tokenids": [...]} or None on failure."""

    records = list(tokens)
    if not records:
        messages.error('Invalid parameter "/": cannot be empty.')
        return None

    validated: list[dict[str, Any]] = []
    seen: set[tuple[int, str]] = set()
    for index, record in enumerate(records):
        item = _validate_record(db_path, caller, index, record, messages, seen)
        if item is None:
            return None
        validated.append(item)

    tokenids = tokens_db.insert_tokens(db_path, validated, creator_userid=caller.userid)
    logger.info(
        "User %s created API token(s) %s",
        caller.username,
        ", ".join(str(t) for t in tokenids),
    )
    return {"tokenids": tokenids}


def generate_tokens(
    db_path,
    *,
    caller: UserRow,
    tokenids: Iterable[int],
    messages: MessageCollector,
) -> list[dict[str, Any]] | None:
    """Generate a fresh secret for each token; returns [{"tokenid", "token"}] or None.

    Only the hash of a secret is stored, so the returned values are the only copy.
    Regenerating replaces (and thereby revokes) the previous secret.
    """

    wanted = [int(t) for t in tokenids]
    rows = {row.tokenid: row for row in tokens_db.get_tokens(db_path, tokenids=wanted)}

    for tokenid in wanted:
        row = rows.get(tokenid)
        if row is None or (row.userid != caller.userid and not is_super_admin(caller)):
            messages.error("No permissions to referred object or it does not exist!")
            return None

    result: list[dict[str, Any]] = []
    for tokenid in wanted:
        secret = ids.new_token_secret()
        tokens_db.set_token_hash(db_path, tokenid=tokenid, token_hash=ids.token_hash(secret))
        result.append({"tokenid": tokenid, "token": secret})

    logger.info("User %s generated secrets for API token(s) %s", caller.username, wanted)
    return result


def list_tokens(db_path, *, caller: UserRow, userid: int | None = None) -> list[tokens_db.TokenRow]:
    """List tokens visible to `caller`: all for super admins, otherwise their own."""

    if not is_super_admin(caller):
        userid = caller.userid
    return tokens_db.list_tokens(db_path, userid=userid)


def discard_tokens(db_path, *, caller: UserRow, tokenids: Iterable[int]) -> None:
    """Remove tokens whose secret generation failed so no secretless row lingers."""

    wanted = [int(t) for t in tokenids]
    removed = tokens_db.delete_tokens(db_path, tokenids=wanted)
    logger.warning(
        "Discarded %d API token(s) %s created by %s without a secret",
        removed,
        wanted,
        caller.username,
    )
