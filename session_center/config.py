# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Config loading
# [NAV-20] Public getters / setters
# [NAV-99] End
# =============================================================================

# === [NAV-00] Imports / constants ============================================
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("data/roaming/client_config.json")
_DEFAULT_CLIENT_CONFIG = {
    "bus_timeout_ms": 30000,
    "default_db_filename": "incidentreview.sqlite",
    "last_workspace_path": None,
    "core_plugin": None,
}


# === [NAV-10] Config loading =================================================
def load_client_config() -> Dict:
    path = CONFIG_PATH
    if not path.exists():
        return _DEFAULT_CLIENT_CONFIG.copy()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("client config unreadable path=%s error=%s", path, exc)
        return _DEFAULT_CLIENT_CONFIG.copy()
    if not isinstance(data, dict):
        return _DEFAULT_CLIENT_CONFIG.copy()
    for key, value in _DEFAULT_CLIENT_CONFIG.items():
        data.setdefault(key, value)
    return data


def save_client_config(data: Dict) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(json.dumps(data, indent=2), encoding="utf-8")


# === [NAV-20] Public getters / setters =======================================
def get_last_workspace_path() -> Optional[str]:
    value = load_client_config().get("last_workspace_path")
    return value if isinstance(value, str) and value else None


def remember_workspace_path(path: str) -> None:
    config = load_client_config()
    if config.get("last_workspace_path") == path:
        return
    config["last_workspace_path"] = path
    save_client_config(config)


def get_bus_timeout_ms() -> int:
    value = load_client_config().get("bus_timeout_ms")
    if isinstance(value, int) and value > 0:
        return value
    return int(_DEFAULT_CLIENT_CONFIG["bus_timeout_ms"])


def get_default_db_filename() -> str:
    value = load_client_config().get("default_db_filename")
    return value if isinstance(value, str) and value else str(_DEFAULT_CLIENT_CONFIG["default_db_filename"])


# === [NAV-99] End =============================================================
__all__ = [
    "CONFIG_PATH",
    "load_client_config",
    "save_client_config",
    "get_last_workspace_path",
    "remember_workspace_path",
    "get_bus_timeout_ms",
    "get_default_db_filename",
]
