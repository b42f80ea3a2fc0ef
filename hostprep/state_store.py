from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with empty defaults (without overriding existing values)."""

    state.setdefault("version", STATE_VERSION)
    state.setdefault("profile", None)
    state.setdefault("observed", {})
    state.setdefault("outcomes", {})
    state.setdefault("execution", {})

    exe = state["execution"]
    exe.setdefault("current_resource", None)
    exe.setdefault("runs", 0)
    exe.setdefault("errors", [])
    exe.setdefault("warnings", [])

    return state


def record_observed(state: Dict[str, Any], resource: str, status: str, detail: str = "") -> None:
    state.setdefault("observed", {})[resource] = {"status": status, "detail": detail}


def record_outcome(state: Dict[str, Any], resource: str, outcome: str, **extra: Any) -> None:
    entry: Dict[str, Any] = {"outcome": outcome}
    entry.update(extra)
    state.setdefault("outcomes", {})[resource] = entry


def record_warning(state: Dict[str, Any], resource: str, message: str) -> None:
    state.setdefault("execution", {}).setdefault("warnings", []).append(
        {"resource": resource, "warning": message}
    )
