from __future__ import annotations

import argparse
import json
import sqlite3
from pathlib import Path

from watchpost_core.config import load_core_config, resolve_configured_paths
from watchpost_core.db import resolve_db_path
from watchpost_core.db.migrate import apply_migrations
from watchpost_core.db.users import create_user, get_role
from watchpost_core.home import ensure_watchpost_layout, resolve_watchpost_home


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="python -m watchpost_core.internal.bootstrap_db",
        description="WatchPost Console internal DB bootstrapper (no API).",
    )
    parser.add_argument("--home", type=Path, default=None, help="Override WATCHPOST_HOME")
    parser.add_argument("--migrate", action="store_true", help="Apply migrations")
    parser.add_argument("--create-user", metavar="USERNAME", help="Create a user")
    parser.add_argument("--role-id", type=int, default=1, help="Role of the created user")
    parser.add_argument("--name", default="", help="First name of the created user")
    parser.add_argument("--surname", default="", help="Last name of the created user")
    args = parser.parse_args(argv)

    environ = None
    if args.home is not None:
        environ = {"WATCHPOST_HOME": str(args.home)}

    home = resolve_watchpost_home(environ)
    paths = ensure_watchpost_layout(home)
    config = load_core_config(paths)
    paths = resolve_configured_paths(paths, config)

    db_path = resolve_db_path(paths)

    if args.migrate or args.create_user:
        apply_migrations(db_path)

    if args.create_user:
        if get_role(db_path, roleid=args.role_id) is None:
            parser.error(f"role {args.role_id} does not exist")
        try:
            user = create_user(
                db_path,
                username=args.create_user,
                roleid=args.role_id,
                name=args.name,
                surname=args.surname,
            )
        except sqlite3.IntegrityError:
            parser.error(f"user {args.create_user!r} already exists")
        print(json.dumps(user.as_dict(), ensure_ascii=False))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
