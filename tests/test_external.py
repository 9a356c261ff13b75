from __future__ import annotations

from tfplan_diagram.graph.external import synthesize_external_nodes
from tfplan_diagram.normalize.schema import Node


def _endpoints(model) -> set:
    found = set()
    for node in model.values():
        found.update(node.edges_new)
        found.update(node.edges_existing)
    return found


def test_unknown_endpoints_become_external_nodes() -> None:
    model = {
        "aws_lambda_function.f": Node(edges_new=["aws_kms_key.shared"]),
        "aws_sqs_queue.q": Node(edges_existing=["aws_kms_key.shared", "aws_vpc.main"]),
    }

    nodes = synthesize_external_nodes(model)

    key = nodes["aws_kms_key.shared"]
    assert key.primary_action() == "external"
    assert key.resources["aws_kms_key.shared"].attributes["type"] == "aws_kms_key.shared"
    assert key.edges_new == ["aws_lambda_function.f", "aws_sqs_queue.q"]
    assert key.edges_existing == ["aws_lambda_function.f", "aws_sqs_queue.q"]
    assert nodes["aws_vpc.main"].edges_new == ["aws_sqs_queue.q"]
    assert _endpoints(nodes) <= set(nodes)
    assert "aws_kms_key.shared" not in model


def test_data_sources_and_role_policies_skipped_only_from_existing_edges() -> None:
    model = {
        "aws_lambda_function.f": Node(
            edges_existing=["module.m.data.aws_iam_policy_document.doc", "aws_iam_role_policy.p"],
            edges_new=["module.m.data.aws_caller_identity.me"],
        ),
    }

    nodes = synthesize_external_nodes(model)

    assert "module.m.data.aws_iam_policy_document.doc" not in nodes
    assert "aws_iam_role_policy.p" not in nodes
    assert "module.m.data.aws_caller_identity.me" in nodes


def test_existing_nodes_are_never_replaced() -> None:
    model = {
        "a.x": Node(edges_new=["b.y"]),
        "b.y": Node(edges_new=["a.x"], tier=1),
    }

    nodes = synthesize_external_nodes(model)

    assert set(nodes) == {"a.x", "b.y"}
    assert nodes["b.y"].tier == 1
