from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from watchpost_core.db import users as users_db

USER_OUTPUT_FIELDS = ("userid", "username", "name", "surname", "roleid")


def get_users(
    db_path,
    *,
    userids: int | Iterable[int] | None = None,
    output: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Return user records restricted to the `output` fields.

    `userid` is always included; unknown output fields are ignored.
    """

    ids: list[int] | None
    if userids is None:
        ids = None
    elif isinstance(userids, int):
        ids = [userids]
    else:
        ids = [int(x) for x in userids]

    fields = list(USER_OUTPUT_FIELDS) if output is None else [
        f for f in output if f in USER_OUTPUT_FIELDS
    ]
    if "userid" not in fields:
        fields.insert(0, "userid")

    rows = users_db.get_users(db_path, userids=ids)
    return [{k: v for k, v in row.as_dict().items() if k in fields} for row in rows]


def get_user_fullname(user: Mapping[str, Any]) -> str:
    """Format a user for display: "username (name surname)" or just "username"."""

    username = str(user.get("username") or "")
    parts = [str(user.get(k) or "").strip() for k in ("name", "surname")]
    full = " ".join(p for p in parts if p)
    if full:
        return f"{username} ({full})"
    return username
