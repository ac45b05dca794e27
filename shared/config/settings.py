"""
Process-level bridge settings resolved from the environment.

Design rules:
- Import-safe (no side effects)
- load_dotenv() is called by the entrypoint / client, not here
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from shared.logging.logger import get_logger
from shared.storage.paths import DEFAULT_CONFIG_PATH, DEFAULT_DB_PATH

log = get_logger("shared.config.settings")

DEFAULT_LFG_EXPIRY_MINUTES = 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_FILL_GRACE_SECONDS = 30.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BridgeSettings:
    discord_token: Optional[str] = None
    owner_id: Optional[str] = None
    convoke_token: Optional[str] = None
    db_path: Path = DEFAULT_DB_PATH
    config_path: Path = DEFAULT_CONFIG_PATH
    filter_links: bool = False
    lfg_expiry_minutes: int = DEFAULT_LFG_EXPIRY_MINUTES
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    fill_grace_seconds: float = DEFAULT_FILL_GRACE_SECONDS

    def is_owner(self, user_id: str | int) -> bool:
        return bool(self.owner_id) and str(user_id) == self.owner_id


def load_settings() -> BridgeSettings:
    """
    Build settings from environment variables.

    Recognised variables:
    DISCORD_TOKEN, OWNER_ID, CONVOKE_TOKEN, BRIDGE_DB_PATH,
    BRIDGE_CONFIG_PATH, FILTER_LINKS, LFG_EXPIRY_MINUTES,
    LFG_SWEEP_INTERVAL, LFG_FILL_GRACE
    """
    owner_id = os.getenv("OWNER_ID")
    db_path = os.getenv("BRIDGE_DB_PATH")
    config_path = os.getenv("BRIDGE_CONFIG_PATH")

    settings = BridgeSettings(
        discord_token=os.getenv("DISCORD_TOKEN") or None,
        owner_id=owner_id.strip() if owner_id and owner_id.strip() else None,
        convoke_token=os.getenv("CONVOKE_TOKEN") or None,
        db_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
        config_path=Path(config_path) if config_path else DEFAULT_CONFIG_PATH,
        filter_links=_env_bool("FILTER_LINKS"),
        lfg_expiry_minutes=_env_int("LFG_EXPIRY_MINUTES", DEFAULT_LFG_EXPIRY_MINUTES),
        sweep_interval_seconds=_env_float("LFG_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL_SECONDS),
        fill_grace_seconds=_env_float("LFG_FILL_GRACE", DEFAULT_FILL_GRACE_SECONDS),
    )

    log.debug(
        "Bridge settings resolved: "
        f"token={'SET' if settings.discord_token else 'MISSING'}, "
        f"owner={'SET' if settings.owner_id else 'MISSING'}, "
        f"convoke={'SET' if settings.convoke_token else 'MISSING'}"
    )
    return settings
