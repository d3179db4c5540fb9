"""Fixed values and file locations shared by the daemon and the client."""

import os
from pathlib import Path
from typing import Final

# Recency list capacity
HISTORY_LEN: Final[int] = 32

SERVICE_NAME: Final[str] = "moe.gyara.changeup"

# Executable that keybindings call back into
CLIENT_BIN: Final[str] = "changeup-client"

SOCKET_ENV: Final[str] = "CHANGEUP_SOCKET"


class ConfigPaths:
    """Default locations, computed once at import time."""

    HOME: Final[Path] = Path.home()
    CONFIG_DIR: Final[Path] = HOME / ".config" / "changeup"
    CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.toml"
    CACHE_DIR: Final[Path] = HOME / ".cache" / "changeup"
    SOCKET_PATH: Final[Path] = CACHE_DIR / "ipc.sock"


def socket_path() -> Path:
    """IPC socket path, honouring the CHANGEUP_SOCKET override."""
    override = os.environ.get(SOCKET_ENV)
    if override:
        return Path(override).expanduser()
    return ConfigPaths.SOCKET_PATH
