from __future__ import annotations

from collections.abc import Mapping
from datetime import tzinfo
from pathlib import Path
from typing import Any

from fastapi.templating import Jinja2Templates

from watchpost_core.db.tokens import TOKEN_STATUS_ENABLED
from watchpost_core.timeunits import format_timestamp
from watchpost_core.ui.operations import build_operations_table

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def render_partial(name: str, data: Mapping[str, Any]) -> str:
    """Render a template fragment to a string (no surrounding page)."""

    return templates.get_template(name).render(**data)


def render_token_view(data: Mapping[str, Any], *, tz: tzinfo, now: int) -> str:
    """Render the "token added" fragment shown once with the generated secret."""

    expires_at = int(data.get("expires_at") or 0)
    ctx = {
        **data,
        "expires_at_text": "Never" if expires_at == 0 else format_timestamp(expires_at, tz),
        "expired": expires_at != 0 and expires_at <= now,
        "status_text": "Enabled" if int(data.get("status", 0)) == TOKEN_STATUS_ENABLED else "Disabled",
        "show_user": data.get("action_src") == "token.edit",
    }
    return render_partial("partials/token_view.html", ctx)


def render_operations_table(data: Mapping[str, Any]) -> str:
    return render_partial(
        "partials/operations_table.html", {"table": build_operations_table(data)}
    )
