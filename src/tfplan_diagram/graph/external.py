from __future__ import annotations

from typing import Dict, Mapping

from ..logging import get_logger
from ..normalize.schema import ACTION_EXTERNAL, Change, Node, NodeModel, Resource, add_unique, clone_model

LOG = get_logger(__name__)

DATA_SOURCE_MARKER = ".data."
ROLE_POLICY_MARKER = "aws_iam_role_policy"


def make_external_node(identifier: str, back_ref: str) -> Node:
    resource = Resource(
        address=identifier,
        change=Change(actions=[ACTION_EXTERNAL]),
        attributes={"type": identifier},
    )
    return Node(
        resources={identifier: resource},
        edges_existing=[back_ref],
        edges_new=[back_ref],
    )


def _add_back_ref(externals: Dict[str, Node], identifier: str, back_ref: str) -> None:
    node = externals.get(identifier)
    if node is None:
        externals[identifier] = make_external_node(identifier, back_ref)
        return
    add_unique(node.edges_existing, back_ref)
    add_unique(node.edges_new, back_ref)


def _suppressed_existing_endpoint(identifier: str) -> bool:
    return DATA_SOURCE_MARKER in identifier or ROLE_POLICY_MARKER in identifier


def synthesize_external_nodes(model: Mapping[str, Node]) -> NodeModel:
    """
    Create placeholder Nodes for edge endpoints outside the model.

    Data-source and role-policy endpoints are skipped when they come from
    `edges_existing` but still synthesized when found through `edges_new`.
    """
    nodes = clone_model(model)
    externals: Dict[str, Node] = {}

    for path, node in nodes.items():
        for identifier in node.edges_existing:
            if identifier in nodes or _suppressed_existing_endpoint(identifier):
                continue
            _add_back_ref(externals, identifier, path)
        for identifier in node.edges_new:
            if identifier in nodes:
                continue
            _add_back_ref(externals, identifier, path)

    for identifier, external in externals.items():
        nodes.setdefault(identifier, external)

    if externals:
        LOG.debug("Synthesized external nodes", extra={"count": len(externals)})
    return nodes
