from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..normalize.schema import Node, NodeModel, clone_model
from ..util.serialization import structurally_equal


def is_meaningful(value: Any) -> bool:
    """Plan tools fill computed-but-unset attributes with null, "", [] or {}."""
    if value is None or value == "":
        return False
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return False
    return True


def compute_field_diff(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
) -> Dict[str, Dict[str, Any]]:
    """
    Per-key {before, after} for keys that meaningfully differ:
      - removed keys, unless the removed value was null
      - added keys, only when the new value is meaningful
      - shared keys whose values are structurally different
    """
    before = before or {}
    after = after or {}
    diff: Dict[str, Dict[str, Any]] = {}

    keys = list(before.keys()) + [k for k in after.keys() if k not in before]
    for key in keys:
        in_before = key in before
        in_after = key in after
        if in_before and not in_after:
            if before[key] is not None:
                diff[key] = {"before": before[key], "after": None}
            continue
        if in_after and not in_before:
            if is_meaningful(after[key]):
                diff[key] = {"before": None, "after": after[key]}
            continue
        if not structurally_equal(before[key], after[key]):
            diff[key] = {"before": before[key], "after": after[key]}
    return diff


def compute_resource_diffs(model: Mapping[str, Node]) -> NodeModel:
    nodes = clone_model(model)
    for node in nodes.values():
        for resource in node.resources.values():
            change = resource.change
            change.before = dict(change.before or {})
            change.after = dict(change.after or {})
            change.diff = compute_field_diff(change.before, change.after)
    return nodes
