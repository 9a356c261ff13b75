from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List

import pytest

import tfplan_diagram.cli as cli
from tfplan_diagram.config import RunConfig
from tfplan_diagram.logging import setup_logging
from tfplan_diagram.util.errors import ConfigError, ExitCode

PLAN = {
    "resource_changes": [
        {"address": "aws_lambda_function.f", "change": {"actions": ["create"], "after": {"runtime": "python3.12"}}},
        {"address": "aws_sqs_queue.q", "change": {"actions": ["create"], "after": {"name": "jobs"}}},
    ]
}
GRAPH = 'digraph { "[root] aws_lambda_function.f (expand)" -> "[root] aws_sqs_queue.q (expand)" }\n'


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    plan = tmp_path / "plan.json"
    plan.write_text(json.dumps(PLAN), encoding="utf-8")
    graph = tmp_path / "graph.dot"
    graph.write_text(GRAPH, encoding="utf-8")
    return plan, graph


def _run(monkeypatch, argv: List[str]) -> int:
    # rebind the log handler to this test's captured stderr
    monkeypatch.setattr(setup_logging, "_configured", False, raising=False)
    monkeypatch.setattr(sys, "argv", ["tfplan-diagram"] + argv)
    with pytest.raises(SystemExit) as exc:
        cli.main()
    return int(exc.value.code)


def test_render_writes_outputs_and_records_upload(monkeypatch, tmp_path, capsys) -> None:
    plan, graph = _write_inputs(tmp_path)
    outdir = tmp_path / "out"
    db = tmp_path / "uploads.db"

    code = _run(
        monkeypatch,
        ["render", "--plan", str(plan), "--graph", str(graph), "--outdir", str(outdir), "--db", str(db), "--seed", "1"],
    )

    assert code == ExitCode.OK
    nodes = json.loads((outdir / "nodes.json").read_text(encoding="utf-8"))
    assert set(nodes) == {"aws_lambda_function.f", "aws_sqs_queue.q"}
    assert nodes["aws_sqs_queue.q"]["edges_new"] == ["aws_lambda_function.f"]
    assert nodes["aws_sqs_queue.q"]["tier"] == 1

    scene = json.loads((outdir / "diagram.excalidraw").read_text(encoding="utf-8"))
    assert len([e for e in scene["elements"] if e["type"] == "arrow"]) == 1
    assert capsys.readouterr().out.strip() == "1"

    # the stored upload renders again without the original inputs
    again = tmp_path / "again"
    code = _run(monkeypatch, ["show", "--id", "1", "--db", str(db), "--outdir", str(again), "--seed", "1"])
    assert code == ExitCode.OK
    assert json.loads((again / "diagram.excalidraw").read_text(encoding="utf-8")) == scene

    code = _run(monkeypatch, ["list-uploads", "--db", str(db)])
    assert code == ExitCode.OK
    assert "plan.json" in capsys.readouterr().out


def test_nodes_command_writes_only_node_model(monkeypatch, tmp_path) -> None:
    plan, graph = _write_inputs(tmp_path)
    outdir = tmp_path / "out"

    code = _run(monkeypatch, ["nodes", "--plan", str(plan), "--graph", str(graph), "--outdir", str(outdir)])

    assert code == ExitCode.OK
    assert (outdir / "nodes.json").exists()
    assert not (outdir / "diagram.excalidraw").exists()


def test_malformed_plan_writes_nothing(monkeypatch, tmp_path) -> None:
    _, graph = _write_inputs(tmp_path)
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    outdir = tmp_path / "out"
    db = tmp_path / "uploads.db"

    code = _run(
        monkeypatch,
        ["render", "--plan", str(bad), "--graph", str(graph), "--outdir", str(outdir), "--db", str(db)],
    )

    assert code == ExitCode.INPUT_ERROR
    assert not outdir.exists()
    assert not db.exists()


def test_show_unknown_upload_is_storage_error(monkeypatch, tmp_path) -> None:
    code = _run(monkeypatch, ["show", "--id", "5", "--db", str(tmp_path / "uploads.db")])
    assert code == ExitCode.STORAGE_ERROR


def test_missing_graph_is_config_error_before_any_output(tmp_path) -> None:
    plan, _ = _write_inputs(tmp_path)
    outdir = tmp_path / "out"
    cfg = RunConfig(plan=plan, graph=None, outdir=outdir, db_path=tmp_path / "uploads.db")

    with pytest.raises(ConfigError):
        cli.cmd_render(cfg)
    with pytest.raises(ConfigError):
        cli.cmd_nodes(cfg)
    assert not outdir.exists()
