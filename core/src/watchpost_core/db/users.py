from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from typing import Any

from watchpost_core.db import connect


@dataclass(frozen=True)
class RoleRow:
    roleid: int
    name: str
    type: int
    readonly: bool
    rules: list[str]


@dataclass(frozen=True)
class UserRow:
    userid: int
    username: str
    name: str
    surname: str
    roleid: int
    role: RoleRow

    def as_dict(self) -> dict[str, Any]:
        return {
            "userid": self.userid,
            "username": self.username,
            "name": self.name,
            "surname": self.surname,
            "roleid": self.roleid,
        }


def _loads_rules(raw: str) -> list[str]:
    try:
        v = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if isinstance(v, list) and all(isinstance(x, str) for x in v):
        return v
    return []


def _role_from_db_row(row: sqlite3.Row) -> RoleRow:
    return RoleRow(
        roleid=int(row["roleid"]),
        name=row["name"],
        type=int(row["type"]),
        readonly=bool(row["readonly"]),
        rules=_loads_rules(row["rules_json"]),
    )


def _user_from_db_row(row: sqlite3.Row) -> UserRow:
    return UserRow(
        userid=int(row["userid"]),
        username=row["username"],
        name=row["name"],
        surname=row["surname"],
        roleid=int(row["roleid"]),
        role=RoleRow(
            roleid=int(row["roleid"]),
            name=row["role_name"],
            type=int(row["role_type"]),
            readonly=bool(row["role_readonly"]),
            rules=_loads_rules(row["role_rules_json"]),
        ),
    )


_USER_SELECT = """
SELECT u.userid, u.username, u.name, u.surname, u.roleid,
       r.name AS role_name, r.type AS role_type, r.readonly AS role_readonly,
       r.rules_json AS role_rules_json
FROM users u
JOIN roles r ON r.roleid = u.roleid
""".strip()


def create_role(
    db_path,
    *,
    name: str,
    type: int,
    rules: list[str] | None = None,
) -> RoleRow:
    with connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO roles (name, type, rules_json) VALUES (?, ?, ?);",
            (name, type, json.dumps(rules or [], ensure_ascii=False)),
        )
        row = conn.execute(
            "SELECT roleid, name, type, readonly, rules_json FROM roles WHERE roleid = ?;",
            (cur.lastrowid,),
        ).fetchone()

    if row is None:
        raise RuntimeError("Failed to read role after insert")
    return _role_from_db_row(row)


def get_role(db_path, *, roleid: int) -> RoleRow | None:
    with connect(db_path) as conn:
        row = conn.execute(
            "SELECT roleid, name, type, readonly, rules_json FROM roles WHERE roleid = ?;",
            (roleid,),
        ).fetchone()

    if row is None:
        return None
    return _role_from_db_row(row)


def create_user(
    db_path,
    *,
    username: str,
    roleid: int,
    name: str = "",
    surname: str = "",
) -> UserRow:
    with connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO users (username, name, surname, roleid) VALUES (?, ?, ?, ?);",
            (username, name, surname, roleid),
        )
        row = conn.execute(f"{_USER_SELECT} WHERE u.userid = ?;", (cur.lastrowid,)).fetchone()

    if row is None:
        raise RuntimeError("Failed to read user after insert")
    return _user_from_db_row(row)


def get_user(db_path, *, userid: int) -> UserRow | None:
    with connect(db_path) as conn:
        row = conn.execute(f"{_USER_SELECT} WHERE u.userid = ?;", (userid,)).fetchone()

    if row is None:
        return None
    return _user_from_db_row(row)


def get_user_by_username(db_path, *, username: str) -> UserRow | None:
    with connect(db_path) as conn:
        row = conn.execute(f"{_USER_SELECT} WHERE u.username = ?;", (username,)).fetchone()

    if row is None:
        return None
    return _user_from_db_row(row)


def get_users(db_path, *, userids: list[int] | None = None) -> list[UserRow]:
    """List users, optionally restricted to `userids` (ordered by userid)."""

    where = ""
    params: list[Any] = []
    if userids is not None:
        if not userids:
            return []
        where = f"WHERE u.userid IN ({', '.join('?' for _ in userids)})"
        params.extend(userids)

    with connect(db_path) as conn:
        rows = conn.execute(
            f"{_USER_SELECT} {where} ORDER BY u.userid ASC;",
            params,
        ).fetchall()

    return [_user_from_db_row(r) for r in rows]
