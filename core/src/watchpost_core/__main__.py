from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

import uvicorn

from watchpost_core.app import create_app
from watchpost_core.config import load_core_config, resolve_configured_paths
from watchpost_core.home import ensure_watchpost_layout, resolve_watchpost_home


def main() -> None:
    home = resolve_watchpost_home()
    paths = ensure_watchpost_layout(home)
    config = load_core_config(paths)
    paths = resolve_configured_paths(paths, config)

    log_file = paths.logs_dir / "core.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(
                log_file,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
            ),
            logging.StreamHandler(),
        ],
    )

    host = os.environ.get("WATCHPOST_BIND") or config.network.bind_host
    env_port = os.environ.get("WATCHPOST_PORT")
    port = int(env_port) if env_port else config.network.core_port

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
