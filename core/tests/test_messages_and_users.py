from __future__ import annotations

import json
from pathlib import Path

from watchpost_core.db.migrate import apply_migrations
from watchpost_core.db.users import get_user
from watchpost_core.internal.bootstrap_db import main as bootstrap_main
from watchpost_core.messages import Message, MessageCollector
from watchpost_core.permissions import (
    ACTIONS_MANAGE_API_TOKENS,
    UI_CONFIGURATION_ACTIONS,
    has_capability,
    is_guest,
    is_super_admin,
)
from watchpost_core.services import users as user_service


def test_message_collector_drains_once() -> None:
    messages = MessageCollector()
    messages.info("created")
    messages.error("broken")

    assert len(messages) == 2
    assert messages.has_errors
    assert messages.drain() == [Message("info", "created"), Message("error", "broken")]
    assert len(messages) == 0
    assert messages.drain_texts() == []


def test_get_users_restricts_output(tmp_path: Path) -> None:
    db_path = tmp_path / "console.sqlite3"
    apply_migrations(db_path)

    users = user_service.get_users(db_path, userids=[1], output=["username", "password"])
    assert users == [{"userid": 1, "username": "Admin"}]
    assert user_service.get_users(db_path, userids=[]) == []


def test_get_user_fullname() -> None:
    assert user_service.get_user_fullname({"username": "ops"}) == "ops"
    assert (
        user_service.get_user_fullname({"username": "ops", "name": "Ann", "surname": ""})
        == "ops (Ann)"
    )
    assert (
        user_service.get_user_fullname({"username": "ops", "name": "Ann", "surname": "Lee"})
        == "ops (Ann Lee)"
    )


def test_seeded_permissions(tmp_path: Path) -> None:
    db_path = tmp_path / "console.sqlite3"
    apply_migrations(db_path)
    admin = get_user(db_path, userid=1)
    guest = get_user(db_path, userid=2)

    assert is_super_admin(admin)
    assert has_capability(admin, UI_CONFIGURATION_ACTIONS)
    assert is_guest(guest)
    assert is_guest(None)
    assert not has_capability(guest, ACTIONS_MANAGE_API_TOKENS)


def test_bootstrap_creates_user(tmp_path: Path, capsys) -> None:
    assert bootstrap_main(["--home", str(tmp_path), "--create-user", "ops", "--name", "Ops"]) == 0

    created = json.loads(capsys.readouterr().out)
    assert created["username"] == "ops"
    assert created["userid"] == 3
    assert created["roleid"] == 1
    assert (tmp_path / "db" / "console.sqlite3").is_file()
