from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WatchPostPaths:
    home: Path
    db_dir: Path
    logs_dir: Path
    config_dir: Path
    tmp_dir: Path

    @property
    def core_config_path(self) -> Path:
        return self.config_dir / "core.json"


def resolve_watchpost_home(environ: dict[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ

    raw = (env.get("WATCHPOST_HOME") or "").strip()
    if raw:
        candidate = Path(raw).expanduser()
        # Relative values are anchored at the user's home dir, never at CWD.
        if not candidate.is_absolute():
            candidate = (Path.home() / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    def default_home() -> Path:
        if sys.platform.startswith("win"):
            base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
            if base:
                return Path(base) / "WatchPost"
            return Path.home() / "AppData" / "Local" / "WatchPost"

        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / "WatchPost"

        xdg = os.environ.get("XDG_DATA_HOME")
        if xdg:
            return Path(xdg) / "watchpost"
        return Path.home() / ".local" / "share" / "watchpost"

    return default_home().resolve()


def ensure_watchpost_layout(home: Path) -> WatchPostPaths:
    home.mkdir(parents=True, exist_ok=True)

    db_dir = home / "db"
    logs_dir = home / "logs"
    config_dir = home / "config"
    tmp_dir = home / "tmp"

    for path in (db_dir, logs_dir, config_dir, tmp_dir):
        path.mkdir(parents=True, exist_ok=True)

    return WatchPostPaths(
        home=home,
        db_dir=db_dir,
        logs_dir=logs_dir,
        config_dir=config_dir,
        tmp_dir=tmp_dir,
    )
