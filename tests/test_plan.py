from __future__ import annotations

import json

import pytest

from tfplan_diagram.parse.plan import load_plan, parse_plan, prior_root_module, resource_changes
from tfplan_diagram.util.errors import InputParseError


def test_parse_plan_accepts_minimal_document() -> None:
    plan = parse_plan(json.dumps({"resource_changes": [{"address": "aws_s3_bucket.b"}]}))
    assert resource_changes(plan) == [{"address": "aws_s3_bucket.b"}]
    assert prior_root_module(plan) is None


def test_parse_plan_without_resource_changes() -> None:
    plan = parse_plan("{}")
    assert resource_changes(plan) == []


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        json.dumps({"resource_changes": {"address": "x"}}),
        json.dumps({"resource_changes": [{"type": "aws_s3_bucket"}]}),
        json.dumps({"resource_changes": ["aws_s3_bucket.b"]}),
    ],
)
def test_parse_plan_rejects_malformed_input(text: str) -> None:
    with pytest.raises(InputParseError):
        parse_plan(text)


def test_prior_root_module_tolerates_partial_prior_state() -> None:
    assert prior_root_module({"prior_state": None}) is None
    assert prior_root_module({"prior_state": {"values": {}}}) is None
    root = {"resources": []}
    assert prior_root_module({"prior_state": {"values": {"root_module": root}}}) == root


def test_load_plan_missing_file(tmp_path) -> None:
    with pytest.raises(InputParseError):
        load_plan(tmp_path / "plan.json")
