from __future__ import annotations

import pytest

from tfplan_diagram.parse.dot import (
    adjacency_from_edges,
    load_dependency_graph,
    parse_dependency_graph,
    sanitize_dot_node_id,
)
from tfplan_diagram.util.errors import InputParseError

TERRAFORM_GRAPH = """
digraph {
	compound = "true"
	newrank = "true"
	subgraph "root" {
		"[root] aws_lambda_function.f (expand)" [label = "aws_lambda_function.f", shape = "box"]
		"[root] aws_lambda_function.f (expand)" -> "[root] var.bucket_name"
		"[root] var.bucket_name" -> "[root] aws_s3_bucket.b (expand)"
		"[root] aws_lambda_function.f (expand)" -> "[root] provider[\\"registry.terraform.io/hashicorp/aws\\"]"
		"[root] aws_lambda_function.f (expand)" -> "[root] var.bucket_name"
	}
}
"""


def test_sanitize_takes_second_token_and_strips_quotes() -> None:
    assert sanitize_dot_node_id('"[root] module.app.aws_lambda_function.f (expand)"') == (
        "module.app.aws_lambda_function.f"
    )
    assert sanitize_dot_node_id('"[root] provider[\\"registry.terraform.io/hashicorp/aws\\"]"') == (
        "provider[registry.terraform.io/hashicorp/aws]"
    )


def test_sanitize_single_token_and_malformed_labels() -> None:
    assert sanitize_dot_node_id('"aws_s3_bucket.b"') == "aws_s3_bucket.b"
    assert sanitize_dot_node_id("") == ""
    assert sanitize_dot_node_id("   ") == ""
    assert sanitize_dot_node_id(None) == ""


def test_adjacency_keeps_direction_and_skips_exact_duplicates() -> None:
    adjacency = adjacency_from_edges(
        [
            ('"[root] a.x"', '"[root] b.y"'),
            ('"[root] a.x"', '"[root] b.y"'),
            ('"[root] b.y"', '"[root] a.x"'),
        ]
    )
    assert adjacency == {"a.x": ["b.y"], "b.y": ["a.x"]}


def test_parse_dependency_graph_reads_subgraph_edges() -> None:
    adjacency = parse_dependency_graph(TERRAFORM_GRAPH)

    assert adjacency["aws_lambda_function.f"][0] == "var.bucket_name"
    assert len(adjacency["aws_lambda_function.f"]) == 2
    assert adjacency["aws_lambda_function.f"][1].startswith("provider")
    assert adjacency["var.bucket_name"] == ["aws_s3_bucket.b"]


def test_parse_dependency_graph_rejects_garbage() -> None:
    with pytest.raises(InputParseError):
        parse_dependency_graph("this is {{ not a graph")


def test_load_dependency_graph_missing_file(tmp_path) -> None:
    with pytest.raises(InputParseError):
        load_dependency_graph(tmp_path / "missing.dot")


def test_load_dependency_graph_from_file(tmp_path) -> None:
    path = tmp_path / "graph.dot"
    path.write_text('digraph { "[root] a.x" -> "[root] b.y" }\n', encoding="utf-8")

    assert load_dependency_graph(path) == {"a.x": ["b.y"]}
