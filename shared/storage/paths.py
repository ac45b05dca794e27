"""
Shared storage path utilities.

Canonical filesystem locations for the bridge database and the
bridge configuration file.

Design goals:
- Single source of truth for storage paths
- OS-safe, repo-relative resolution
- Zero side effects on import
"""

from __future__ import annotations

from pathlib import Path

# ----------------------------------------------------------------------
# BASE DIRECTORIES
# ----------------------------------------------------------------------

# Repo root is assumed to be the current working directory
# when the bridge is launched (consistent with core.bridge_app)
BASE_DIR = Path.cwd()

DATA_DIR = BASE_DIR / "data"
STATE_DIR = BASE_DIR / "shared" / "state"

DEFAULT_DB_PATH = DATA_DIR / "pdh-bridge.db"
DEFAULT_CONFIG_PATH = STATE_DIR / "bridge-config.json"
