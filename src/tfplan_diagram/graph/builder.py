from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..normalize.schema import Node, NodeModel, Resource, canonical_path


def build_nodes(resource_changes: Iterable[Mapping[str, Any]]) -> NodeModel:
    """
    Group per-instance change records under their canonical path.

    `aws_instance.web[0]` and `aws_instance.web[1]` become one Node
    `aws_instance.web` holding both records keyed by their full addresses.
    """
    nodes: NodeModel = {}
    for record in resource_changes:
        address = str(record.get("address") or "")
        node = nodes.setdefault(canonical_path(address), Node())
        node.resources[address] = Resource.from_record(record)
    return nodes
