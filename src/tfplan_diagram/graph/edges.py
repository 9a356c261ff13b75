from __future__ import annotations

from collections import deque
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..logging import get_logger
from ..normalize.schema import (
    ACTION_EXISTING,
    AdjacencyList,
    Change,
    Node,
    NodeModel,
    Resource,
    add_unique,
    canonical_path,
    clone_model,
)

LOG = get_logger(__name__)

PROVIDER_PREFIX = "provider"

# Traversal decisions for a visited dependency-graph vertex.
RECORD = "record"
SKIP = "skip"
CONTINUE = "continue"

StopPredicate = Callable[[str], str]


def node_boundary_predicate(model: Mapping[str, Node]) -> StopPredicate:
    """Known Nodes are recorded and end the walk; provider vertices are dead ends."""

    def _decide(vertex: str) -> str:
        if vertex.startswith(PROVIDER_PREFIX):
            return SKIP
        if vertex in model:
            return RECORD
        return CONTINUE

    return _decide


def reachable(start: str, adjacency: AdjacencyList, decide: StopPredicate) -> List[str]:
    """
    Breadth-first walk from `start`. Returns recorded vertices in discovery order.
    The start vertex itself is never recorded.
    """
    visited = {start}
    queue = deque([start])
    found: List[str] = []
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, ()):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            decision = decide(neighbor)
            if decision == RECORD:
                found.append(neighbor)
            elif decision == CONTINUE:
                queue.append(neighbor)
    return found


def symmetrize(model: NodeModel, attr: str) -> NodeModel:
    """For every A -> B in `attr`, add B -> A when B is a Node. In place."""
    for path, node in list(model.items()):
        for target in list(getattr(node, attr)):
            other = model.get(target)
            if other is None or target == path:
                continue
            add_unique(getattr(other, attr), path)
    return model


def resolve_new_edges(model: Mapping[str, Node], adjacency: AdjacencyList) -> NodeModel:
    nodes = clone_model(model)
    decide = node_boundary_predicate(nodes)
    for path, node in nodes.items():
        node.edges_new = reachable(path, adjacency, decide)
    symmetrize(nodes, "edges_new")
    LOG.debug(
        "Resolved dependency-graph edges",
        extra={"edge_endpoints": sum(len(n.edges_new) for n in nodes.values())},
    )
    return nodes


def _iter_prior_resources(root_module: Mapping[str, Any]):
    stack: List[Mapping[str, Any]] = [root_module]
    while stack:
        module = stack.pop()
        for resource in module.get("resources") or []:
            if isinstance(resource, Mapping):
                yield resource
        for child in module.get("child_modules") or []:
            if isinstance(child, Mapping):
                stack.append(child)


def resolve_existing_edges(model: Mapping[str, Node], root_module: Optional[Mapping[str, Any]]) -> NodeModel:
    """
    Walk the prior-state module tree: make sure every resource found there has a
    Node (placeholder Resource with action `existing` when the plan did not
    report it) and turn `depends_on` declarations into symmetric edges.
    """
    nodes = clone_model(model)
    if not root_module:
        return nodes

    raw_edges: Dict[str, List[str]] = {}
    for resource in _iter_prior_resources(root_module):
        address = str(resource.get("address") or "")
        node = nodes.setdefault(canonical_path(address), Node())
        if address not in node.resources:
            node.resources[address] = Resource.from_record(resource, change=Change(actions=[ACTION_EXISTING]))
        for dependency in resource.get("depends_on") or []:
            dependency = str(dependency)
            add_unique(raw_edges.setdefault(address, []), dependency)
            add_unique(raw_edges.setdefault(dependency, []), address)

    for raw_source, raw_targets in raw_edges.items():
        source = canonical_path(raw_source)
        node = nodes.get(source)
        if node is None:
            continue
        for raw_target in raw_targets:
            target = canonical_path(raw_target)
            if target == source or target not in nodes:
                continue
            add_unique(node.edges_existing, target)
    return nodes
