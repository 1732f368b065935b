from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from typing import Any

from watchpost_core.db import connect

TOKEN_STATUS_ENABLED = 0
TOKEN_STATUS_DISABLED = 1


@dataclass(frozen=True)
class TokenRow:
    tokenid: int
    name: str
    description: str
    userid: int
    status: int
    expires_at: int
    created_at: int
    creator_userid: int | None
    lastaccess: int
    has_secret: bool

    def is_expired(self, now: int | None = None) -> bool:
        if self.expires_at == 0:
            return False
        return self.expires_at <= (int(time.time()) if now is None else now)


_TOKEN_SELECT = """
SELECT tokenid, name, description, userid, status, expires_at, created_at,
       creator_userid, lastaccess, token IS NOT NULL AS has_secret
FROM tokens
""".strip()


def _token_from_db_row(row: sqlite3.Row) -> TokenRow:
    return TokenRow(
        tokenid=int(row["tokenid"]),
        name=row["name"],
        description=row["description"],
        userid=int(row["userid"]),
        status=int(row["status"]),
        expires_at=int(row["expires_at"]),
        created_at=int(row["created_at"]),
        creator_userid=row["creator_userid"],
        lastaccess=int(row["lastaccess"]),
        has_secret=bool(row["has_secret"]),
    )


def insert_tokens(db_path, records: list[dict[str, Any]], *, creator_userid: int) -> list[int]:
    """Insert token rows in one transaction and return their ids in input order."""

    tokenids: list[int] = []
    with connect(db_path) as conn:
        for record in records:
            cur = conn.execute(
                """
                INSERT INTO tokens (name, description, userid, status, expires_at, creator_userid)
                VALUES (?, ?, ?, ?, ?, ?);
                """.strip(),
                (
                    record["name"],
                    record.get("description", ""),
                    record["userid"],
                    record.get("status", TOKEN_STATUS_ENABLED),
                    record.get("expires_at", 0),
                    creator_userid,
                ),
            )
            tokenids.append(int(cur.lastrowid))
    return tokenids


def get_token(db_path, *, tokenid: int) -> TokenRow | None:
    with connect(db_path) as conn:
        row = conn.execute(f"{_TOKEN_SELECT} WHERE tokenid = ?;", (tokenid,)).fetchone()

    if row is None:
        return None
    return _token_from_db_row(row)


def get_tokens(db_path, *, tokenids: list[int]) -> list[TokenRow]:
    if not tokenids:
        return []
    with connect(db_path) as conn:
        rows = conn.execute(
            f"{_TOKEN_SELECT} WHERE tokenid IN ({', '.join('?' for _ in tokenids)})"
            " ORDER BY tokenid ASC;",
            tokenids,
        ).fetchall()
    return [_token_from_db_row(r) for r in rows]


def list_tokens(db_path, *, userid: int | None = None) -> list[TokenRow]:
    where = ""
    params: list[Any] = []
    if userid is not None:
        where = "WHERE userid = ?"
        params.append(userid)

    with connect(db_path) as conn:
        rows = conn.execute(
            f"{_TOKEN_SELECT} {where} ORDER BY name ASC, tokenid ASC;",
            params,
        ).fetchall()
    return [_token_from_db_row(r) for r in rows]


def token_names_for_user(db_path, *, userid: int) -> set[str]:
    with connect(db_path) as conn:
        rows = conn.execute("SELECT name FROM tokens WHERE userid = ?;", (userid,)).fetchall()
    return {r["name"] for r in rows}


def set_token_hash(db_path, *, tokenid: int, token_hash: str) -> bool:
    with connect(db_path) as conn:
        cur = conn.execute(
            "UPDATE tokens SET token = ? WHERE tokenid = ?;",
            (token_hash, tokenid),
        )
    return cur.rowcount > 0


def find_active_token_by_hash(db_path, *, token_hash: str, now: int | None = None) -> TokenRow | None:
    """Return the enabled, unexpired token whose stored hash matches."""

    with connect(db_path) as conn:
        row = conn.execute(
            f"{_TOKEN_SELECT} WHERE token = ? AND status = ?;",
            (token_hash, TOKEN_STATUS_ENABLED),
        ).fetchone()

    if row is None:
        return None
    token = _token_from_db_row(row)
    if token.is_expired(now):
        return None
    return token


def touch_token(db_path, *, tokenid: int, now: int | None = None) -> None:
    with connect(db_path) as conn:
        conn.execute(
            "UPDATE tokens SET lastaccess = ? WHERE tokenid = ?;",
            (int(time.time()) if now is None else now, tokenid),
        )


def delete_tokens(db_path, *, tokenids: list[int]) -> int:
    if not tokenids:
        return 0
    with connect(db_path) as conn:
        cur = conn.execute(
            f"DELETE FROM tokens WHERE tokenid IN ({', '.join('?' for _ in tokenids)});",
            tokenids,
        )
    return cur.rowcount
