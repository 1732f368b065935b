from __future__ import annotations

MIGRATIONS: list[tuple[str, str]] = [
    (
        "0001_init",
        """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS roles (
    roleid INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type INTEGER NOT NULL DEFAULT 1,
    readonly INTEGER NOT NULL DEFAULT 0,
    rules_json TEXT NOT NULL DEFAULT '[]',
    UNIQUE(name)
);

CREATE TABLE IF NOT EXISTS users (
    userid INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    surname TEXT NOT NULL DEFAULT '',
    roleid INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(username),
    FOREIGN KEY(roleid) REFERENCES roles(roleid) ON DELETE RESTRICT
);

CREATE INDEX IF NOT EXISTS idx_users_roleid ON users(roleid);

CREATE TABLE IF NOT EXISTS tokens (
    tokenid INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    userid INTEGER NOT NULL,
    token TEXT,
    lastaccess INTEGER NOT NULL DEFAULT 0,
    status INTEGER NOT NULL DEFAULT 0,
    expires_at INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
    creator_userid INTEGER,
    UNIQUE(userid, name),
    UNIQUE(token),
    FOREIGN KEY(userid) REFERENCES users(userid) ON DELETE CASCADE,
    FOREIGN KEY(creator_userid) REFERENCES users(userid) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_tokens_userid ON tokens(userid);
CREATE INDEX IF NOT EXISTS idx_tokens_status ON tokens(status);
""",
    ),
    (
        "0002_default_roles_and_users",
        """
INSERT OR IGNORE INTO roles (roleid, name, type, readonly, rules_json) VALUES
    (1, 'User role', 1, 0,
     '["ui.monitoring.dashboard", "ui.monitoring.problems", "actions.manage_api_tokens"]'),
    (2, 'Admin role', 2, 0,
     '["ui.monitoring.dashboard", "ui.configuration.actions", "actions.manage_api_tokens"]'),
    (3, 'Super admin role', 3, 1, '[]'),
    (4, 'Guest role', 1, 0, '["ui.monitoring.dashboard"]');

INSERT OR IGNORE INTO users (userid, username, name, surname, roleid) VALUES
    (1, 'Admin', 'WatchPost', 'Administrator', 3),
    (2, 'guest', '', '', 4);
""",
    ),
]
