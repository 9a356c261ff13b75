from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any


def stable_json_dumps(obj: Any) -> str:
    """
    Deterministic compact JSON: sorted keys, no whitespace, unicode kept.
    Used both for structural comparison and for storage payloads.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _integral_floats_as_int(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _integral_floats_as_int(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_integral_floats_as_int(v) for v in value]
    return value


def structurally_equal(a: Any, b: Any) -> bool:
    """
    Compare two JSON values by their canonical encoding.

    Numbers compare by value (`1` equals `1.0`) while `1` and `true` stay
    distinct, which plain `==` would not keep apart.
    """
    left = _integral_floats_as_int(sanitize_for_json(a))
    right = _integral_floats_as_int(sanitize_for_json(b))
    return stable_json_dumps(left) == stable_json_dumps(right)


def sanitize_for_json(value: Any) -> Any:
    """
    Convert common non-JSON types to serializable forms.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return [sanitize_for_json(v) for v in sorted(value, key=str)]
    return value


def write_json(path: Path, obj: Any, *, indent: int | None = 2) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(sanitize_for_json(obj), indent=indent, ensure_ascii=False), encoding="utf-8")
    return path
