from __future__ import annotations

from typing import Protocol

GUEST_USERNAME = "guest"

USER_TYPE_USER = 1
USER_TYPE_ADMIN = 2
USER_TYPE_SUPER_ADMIN = 3

ACTIONS_MANAGE_API_TOKENS = "actions.manage_api_tokens"
ACTIONS_EDIT_DASHBOARDS = "actions.edit_dashboards"
ACTIONS_EXECUTE_SCRIPTS = "actions.execute_scripts"
UI_MONITORING_DASHBOARD = "ui.monitoring.dashboard"
UI_MONITORING_PROBLEMS = "ui.monitoring.problems"
UI_CONFIGURATION_ACTIONS = "ui.configuration.actions"

DEFAULT_CAPABILITY_NAMES = [
    ACTIONS_MANAGE_API_TOKENS,
    ACTIONS_EDIT_DASHBOARDS,
    ACTIONS_EXECUTE_SCRIPTS,
    UI_MONITORING_DASHBOARD,
    UI_MONITORING_PROBLEMS,
    UI_CONFIGURATION_ACTIONS,
]


class _Role(Protocol):
    type: int
    rules: list[str]


class _User(Protocol):
    username: str
    role: _Role


def is_guest(user: _User | None) -> bool:
    return user is None or user.username == GUEST_USERNAME


def is_super_admin(user: _User | None) -> bool:
    return user is not None and user.role.type == USER_TYPE_SUPER_ADMIN


def has_capability(user: _User | None, capability: str) -> bool:
    if user is None:
        return False
    if is_super_admin(user):
        return True
    return capability in user.role.rules
