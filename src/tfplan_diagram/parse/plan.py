from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..util.errors import InputParseError

Plan = Dict[str, Any]


def parse_plan(text: str) -> Plan:
    """
    Parse `terraform show -json` output. Only the shape the pipeline relies on is
    checked: a top-level object whose `resource_changes` (if present) is a list of
    objects each carrying a string `address`.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputParseError(f"Plan is not valid JSON: {e}") from e
    return validate_plan(data)


def validate_plan(data: Any) -> Plan:
    if not isinstance(data, dict):
        raise InputParseError("Plan must be a JSON object")
    changes = data.get("resource_changes")
    if changes is None:
        return data
    if not isinstance(changes, list):
        raise InputParseError("Plan field 'resource_changes' must be a list")
    for i, rc in enumerate(changes):
        if not isinstance(rc, dict) or not isinstance(rc.get("address"), str):
            raise InputParseError(f"resource_changes[{i}] must be an object with a string 'address'")
    return data


def load_plan(path: Path) -> Plan:
    if not path.exists():
        raise InputParseError(f"Plan file not found: {path}")
    return parse_plan(path.read_text(encoding="utf-8"))


def resource_changes(plan: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [rc for rc in plan.get("resource_changes") or [] if isinstance(rc, dict)]


def prior_root_module(plan: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    prior = plan.get("prior_state")
    if not isinstance(prior, Mapping):
        return None
    values = prior.get("values")
    if not isinstance(values, Mapping):
        return None
    root = values.get("root_module")
    return root if isinstance(root, dict) else None
