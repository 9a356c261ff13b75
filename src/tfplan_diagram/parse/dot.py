from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator, List, Tuple

import pydot

from ..logging import get_logger
from ..normalize.schema import AdjacencyList
from ..util.errors import InputParseError

LOG = get_logger(__name__)

_STRIP_CHARS = str.maketrans("", "", '"\\')


def sanitize_dot_node_id(label: Any) -> str:
    """
    Extract the resource identifier from a `terraform graph` vertex label.

    `"[root] module.app.aws_lambda_function.f (expand)"` -> `module.app.aws_lambda_function.f`.
    With a single token that token is used; quotes and backslashes are removed.
    Malformed labels give "".
    """
    parts = str(label if label is not None else "").split()
    if not parts:
        return ""
    raw = parts[1] if len(parts) >= 2 else parts[0]
    return raw.translate(_STRIP_CHARS)


def adjacency_from_edges(edges: Iterable[Tuple[Any, Any]]) -> AdjacencyList:
    """Directed adjacency keyed by sanitized ids; exact duplicates skipped."""
    adjacency: AdjacencyList = {}
    for v, w in edges:
        source = sanitize_dot_node_id(v)
        target = sanitize_dot_node_id(w)
        targets = adjacency.setdefault(source, [])
        if target not in targets:
            targets.append(target)
    return adjacency


def _iter_graph_edges(graph: Any) -> Iterator[Tuple[Any, Any]]:
    for edge in graph.get_edges():
        yield edge.get_source(), edge.get_destination()
    for sub in graph.get_subgraphs():
        yield from _iter_graph_edges(sub)


def parse_dot_edges(text: str) -> List[Tuple[Any, Any]]:
    try:
        graphs = pydot.graph_from_dot_data(text)
    except Exception as e:
        raise InputParseError(f"Dependency graph is not valid DOT: {e}") from e
    if not graphs:
        raise InputParseError("Dependency graph is not valid DOT: no graph found")
    edges: List[Tuple[Any, Any]] = []
    for graph in graphs:
        edges.extend(_iter_graph_edges(graph))
    return edges


def parse_dependency_graph(text: str) -> AdjacencyList:
    edges = parse_dot_edges(text)
    adjacency = adjacency_from_edges(edges)
    LOG.debug("Parsed dependency graph", extra={"edge_count": len(edges), "vertex_count": len(adjacency)})
    return adjacency


def load_dependency_graph(path: Path) -> AdjacencyList:
    if not path.exists():
        raise InputParseError(f"Dependency graph file not found: {path}")
    return parse_dependency_graph(path.read_text(encoding="utf-8"))
