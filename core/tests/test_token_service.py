from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from watchpost_core.db import connect
from watchpost_core.db.ids import token_hash
from watchpost_core.db.migrate import apply_migrations
from watchpost_core.db.tokens import find_active_token_by_hash, get_token
from watchpost_core.db.users import create_user, get_user
from watchpost_core.messages import MessageCollector
from watchpost_core.services import tokens as token_service


def _setup(tmp_path: Path) -> Path:
    db_path = tmp_path / "console.sqlite3"
    apply_migrations(db_path)
    return db_path


def test_create_and_generate_stores_only_the_hash(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)
    messages = MessageCollector()

    created = token_service.create_tokens(
        db_path, caller=admin, tokens=[{"name": "ci", "userid": 1}], messages=messages
    )
    assert created is not None
    (tokenid,) = created["tokenids"]

    row = get_token(db_path, tokenid=tokenid)
    assert row is not None
    assert row.has_secret is False
    assert row.creator_userid == 1

    generated = token_service.generate_tokens(
        db_path, caller=admin, tokenids=[tokenid], messages=messages
    )
    assert generated is not None
    secret = generated[0]["token"]
    assert generated[0]["tokenid"] == tokenid

    with connect(db_path) as conn:
        stored = conn.execute("SELECT token FROM tokens WHERE tokenid = ?;", (tokenid,)).fetchone()
    assert stored["token"] == token_hash(secret)
    assert stored["token"] != secret

    found = find_active_token_by_hash(db_path, token_hash=token_hash(secret))
    assert found is not None
    assert found.tokenid == tokenid
    assert len(messages) == 0


def test_duplicate_name_for_same_user_fails(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)

    messages = MessageCollector()
    assert token_service.create_tokens(
        db_path, caller=admin, tokens=[{"name": "dup", "userid": 1}], messages=messages
    )

    result = token_service.create_tokens(
        db_path, caller=admin, tokens=[{"name": "dup", "userid": 1}], messages=messages
    )
    assert result is None
    assert messages.drain_texts() == ['API token "dup" already exists for userid "1".']


def test_duplicate_name_within_batch_fails(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)
    messages = MessageCollector()

    result = token_service.create_tokens(
        db_path,
        caller=admin,
        tokens=[{"name": "twice", "userid": 1}, {"name": "twice", "userid": 1}],
        messages=messages,
    )
    assert result is None
    assert messages.has_errors
    assert token_service.list_tokens(db_path, caller=admin) == []


def test_regular_user_cannot_create_for_others(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    alice = create_user(db_path, username="alice", roleid=1)
    messages = MessageCollector()

    result = token_service.create_tokens(
        db_path, caller=alice, tokens=[{"name": "x", "userid": 1}], messages=messages
    )
    assert result is None
    assert messages.drain_texts() == [
        "Only Super admin users can create API tokens for other users."
    ]

    assert token_service.create_tokens(
        db_path, caller=alice, tokens=[{"name": "x"}], messages=messages
    )


def test_tokens_cannot_be_created_for_guest_or_missing_user(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)
    messages = MessageCollector()

    assert (
        token_service.create_tokens(
            db_path, caller=admin, tokens=[{"name": "g", "userid": 2}], messages=messages
        )
        is None
    )
    assert (
        token_service.create_tokens(
            db_path, caller=admin, tokens=[{"name": "m", "userid": 999}], messages=messages
        )
        is None
    )
    assert messages.drain_texts() == [
        'API tokens cannot be created for user "guest".',
        'User with ID "999" is not available.',
    ]


def test_generate_for_foreign_token_is_refused(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)
    alice = create_user(db_path, username="alice", roleid=1)
    messages = MessageCollector()

    created = token_service.create_tokens(
        db_path, caller=admin, tokens=[{"name": "admin-only"}], messages=messages
    )
    assert created is not None

    assert (
        token_service.generate_tokens(
            db_path, caller=alice, tokenids=created["tokenids"], messages=messages
        )
        is None
    )
    assert messages.has_errors
    assert get_token(db_path, tokenid=created["tokenids"][0]).has_secret is False


def test_list_tokens_scopes_regular_users(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)
    admin = get_user(db_path, userid=1)
    alice = create_user(db_path, username="alice", roleid=1)
    messages = MessageCollector()

    token_service.create_tokens(db_path, caller=admin, tokens=[{"name": "a"}], messages=messages)
    token_service.create_tokens(db_path, caller=alice, tokens=[{"name": "b"}], messages=messages)

    assert [t.name for t in token_service.list_tokens(db_path, caller=admin)] == ["a", "b"]
    assert [t.name for t in token_service.list_tokens(db_path, caller=alice, userid=1)] == ["b"]


def test_unique_constraint_backs_the_name_check(tmp_path: Path) -> None:
    db_path = _setup(tmp_path)

    with connect(db_path) as conn:
        conn.execute("INSERT INTO tokens (name, userid) VALUES ('n', 1);")

    with pytest.raises(sqlite3.IntegrityError):
        with connect(db_path) as conn:
            conn.execute("INSERT INTO tokens (name, userid) VALUES ('n', 1);")
