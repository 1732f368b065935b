from watchpost_core.config import CoreConfig, load_core_config
from watchpost_core.home import WatchPostPaths, ensure_watchpost_layout, resolve_watchpost_home

__version__ = "0.1.0"

__all__ = [
    "CoreConfig",
    "WatchPostPaths",
    "__version__",
    "ensure_watchpost_layout",
    "load_core_config",
    "resolve_watchpost_home",
]
