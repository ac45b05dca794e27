"""
======================================================================
 PDH Bridge — Version v1.0.0 (Build 2026.10)
======================================================================
"""

from __future__ import annotations

"""
Bridge configuration validation script.

Validates the bridge config JSON (community bindings + settings)
without starting the runtime.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.config.bridge import validate_bridge_config  # noqa: E402
from shared.storage.paths import DEFAULT_CONFIG_PATH  # noqa: E402


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: root JSON value must be an object")
    return data


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv: Optional[list] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0]) if args else DEFAULT_CONFIG_PATH

    try:
        data = _load_json(path)
    except ValueError as e:
        _error(str(e))
        return 1

    if data is None:
        print(f"No bridge config at {path}; defaults will be used.")
        return 0

    if not validate_bridge_config(data):
        _error(f"{path.name}: invalid bridge configuration")
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
