from __future__ import annotations

from typing import Mapping, Sequence, Tuple

from ..logging import get_logger
from ..normalize.schema import Node, NodeModel, clone_model

LOG = get_logger(__name__)

# (node path contains, drop edges whose endpoint contains)
EDGE_FILTER_RULES: Tuple[Tuple[str, str], ...] = (
    ("aws_iam_role_policy", "aws_lambda_function"),
    ("aws_iam_policy_document", "aws_lambda_function"),
    ("aws_lambda_function", "aws_iam_role_policy"),
    ("aws_lambda_function", "aws_iam_policy_document"),
)


def delete_orphaned_nodes(model: Mapping[str, Node]) -> NodeModel:
    return {path: node for path, node in clone_model(model).items() if node.has_edges()}


def filter_edges(
    model: Mapping[str, Node],
    rules: Sequence[Tuple[str, str]] = EDGE_FILTER_RULES,
) -> NodeModel:
    nodes = clone_model(model)
    for path, node in nodes.items():
        for path_match, edge_exclude in rules:
            if path_match not in path:
                continue
            node.edges_existing = [e for e in node.edges_existing if edge_exclude not in e]
            node.edges_new = [e for e in node.edges_new if edge_exclude not in e]
    return nodes


def sanitize_graph(
    model: Mapping[str, Node],
    rules: Sequence[Tuple[str, str]] = EDGE_FILTER_RULES,
) -> NodeModel:
    """
    Drop isolated Nodes, then strip wiring edges matched by `rules`. Nodes left
    without edges by the filter are dropped as well.
    """
    pruned = delete_orphaned_nodes(model)
    filtered = filter_edges(pruned, rules)
    result = delete_orphaned_nodes(filtered)
    LOG.debug(
        "Sanitized graph",
        extra={
            "orphans_dropped": len(model) - len(pruned),
            "emptied_by_filter": len(filtered) - len(result),
        },
    )
    return result
