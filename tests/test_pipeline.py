from __future__ import annotations

from typing import Any, Dict, List

import pytest

from tfplan_diagram.graph.builder import build_nodes
from tfplan_diagram.graph.edges import resolve_new_edges
from tfplan_diagram.graph.pipeline import STAGE_NAMES, build_node_model
from tfplan_diagram.parse.dot import parse_dependency_graph
from tfplan_diagram.util.errors import InputParseError

ROLE_POLICY_PLAN: Dict[str, Any] = {
    "resource_changes": [
        {"address": "aws_lambda_function.f", "change": {"actions": ["create"]}},
        {"address": "aws_iam_role_policy.p", "change": {"actions": ["create"]}},
    ]
}
ROLE_POLICY_GRAPH = 'digraph { "[root] aws_iam_role_policy.p (expand)" -> "[root] aws_lambda_function.f (expand)" }'

SERVICE_PLAN: Dict[str, Any] = {
    "resource_changes": [
        {
            "address": "aws_lambda_function.f",
            "type": "aws_lambda_function",
            "change": {"actions": ["create"], "before": None, "after": {"memory_size": 128}},
        },
        {
            "address": "aws_s3_bucket.b[0]",
            "change": {
                "actions": ["update"],
                "before": {"acl": "private", "tags": None},
                "after": {"acl": "public-read", "tags": None},
            },
        },
        {
            "address": "aws_s3_bucket.b[1]",
            "change": {"actions": ["no-op"], "before": {"acl": "private"}, "after": {"acl": "private"}},
        },
        {"address": "null_resource.orphan", "change": {"actions": ["create"]}},
    ],
    "prior_state": {
        "values": {
            "root_module": {
                "resources": [
                    {"address": "aws_s3_bucket.b[0]", "depends_on": []},
                    {"address": "aws_sqs_queue.q", "depends_on": ["aws_s3_bucket.b"]},
                ],
                "child_modules": [
                    {"resources": [{"address": "module.m.aws_sns_topic.t", "depends_on": ["aws_sqs_queue.q"]}]}
                ],
            }
        }
    },
}
SERVICE_GRAPH = """
digraph {
	subgraph "root" {
		"[root] aws_lambda_function.f (expand)" -> "[root] var.bucket_name"
		"[root] var.bucket_name" -> "[root] aws_s3_bucket.b (expand)"
		"[root] aws_lambda_function.f (expand)" -> "[root] provider.aws"
		"[root] provider.aws" -> "[root] null_resource.orphan (expand)"
	}
}
"""


def test_role_policy_example_yields_empty_model() -> None:
    adjacency = parse_dependency_graph(ROLE_POLICY_GRAPH)
    stages: List[str] = []

    model = build_node_model(ROLE_POLICY_PLAN, adjacency, on_stage=stages.append)

    assert model == {}
    assert tuple(stages) == STAGE_NAMES


def test_role_policy_nodes_are_mutual_neighbours_before_sanitizing() -> None:
    nodes = resolve_new_edges(
        build_nodes(ROLE_POLICY_PLAN["resource_changes"]),
        parse_dependency_graph(ROLE_POLICY_GRAPH),
    )

    assert nodes["aws_lambda_function.f"].edges_new == ["aws_iam_role_policy.p"]
    assert nodes["aws_iam_role_policy.p"].edges_new == ["aws_lambda_function.f"]


def test_service_plan_end_to_end() -> None:
    model = build_node_model(SERVICE_PLAN, parse_dependency_graph(SERVICE_GRAPH))

    assert set(model) == {
        "aws_lambda_function.f",
        "aws_s3_bucket.b",
        "aws_sqs_queue.q",
        "module.m.aws_sns_topic.t",
    }
    assert model["aws_lambda_function.f"].edges_new == ["aws_s3_bucket.b"]
    assert model["aws_s3_bucket.b"].edges_new == ["aws_lambda_function.f"]
    assert model["aws_sqs_queue.q"].edges_existing == ["aws_s3_bucket.b", "module.m.aws_sns_topic.t"]

    for path, node in model.items():
        assert node.tier == 1
        assert node.enrichment is not None
        for attr in ("edges_new", "edges_existing"):
            for target in getattr(node, attr):
                assert target != path
                assert target in model
                assert path in getattr(model[target], attr)

    bucket = model["aws_s3_bucket.b"]
    assert bucket.resources["aws_s3_bucket.b[0]"].change.diff == {
        "acl": {"before": "private", "after": "public-read"}
    }
    assert bucket.resources["aws_s3_bucket.b[1]"].change.diff == {}
    assert "In-place update - verify no breaking changes" in bucket.enrichment["issues"]

    lam = model["aws_lambda_function.f"].resources["aws_lambda_function.f"].change
    assert lam.before == {}
    assert lam.diff == {"memory_size": {"before": None, "after": 128}}
    assert model["aws_sqs_queue.q"].primary_action() == "existing"


def test_input_model_stays_untouched_between_runs() -> None:
    adjacency = parse_dependency_graph(SERVICE_GRAPH)

    first = build_node_model(SERVICE_PLAN, adjacency)
    second = build_node_model(SERVICE_PLAN, adjacency)

    assert first == second
    assert "diff" not in SERVICE_PLAN["resource_changes"][0]["change"]


def test_malformed_plan_aborts_before_any_stage() -> None:
    stages: List[str] = []
    with pytest.raises(InputParseError):
        build_node_model({"resource_changes": [{"type": "x"}]}, {}, on_stage=stages.append)
    assert stages == []
