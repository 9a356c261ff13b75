from __future__ import annotations

import io

from rich.console import Console

from tfplan_diagram.graph.pipeline import STAGE_NAMES
from tfplan_diagram.store.uploads import UploadRecord
from tfplan_diagram.util.rich_progress import PipelineProgress, render_run_summary_table, render_uploads_table


def _console() -> Console:
    return Console(file=io.StringIO(), width=120, force_terminal=False)


def test_disabled_progress_accepts_calls() -> None:
    with PipelineProgress(STAGE_NAMES, enabled=False, console=_console()) as progress:
        progress.stage_done("build")
        progress.add_stage("scene")
    assert progress.enabled is False


def test_enabled_progress_tracks_extra_stage() -> None:
    with PipelineProgress(STAGE_NAMES, enabled=True, console=_console()) as progress:
        for name in STAGE_NAMES:
            progress.stage_done(name)
        progress.add_stage("scene")
        progress.add_stage("scene")
        progress.stage_done("scene")
    assert progress.enabled is True


def test_summary_and_uploads_tables_render() -> None:
    console = _console()
    render_run_summary_table(
        enabled=True,
        status="OK",
        metrics={"node_count": 4, "edge_count": 3, "element_count": 10, "upload_id": 2},
        outdir="out",
        console=console,
    )
    render_uploads_table(
        [UploadRecord(id=2, plan_filename="plan.json", dot_filename=None, node_count=4, created_at="2024-01-01")],
        console=console,
    )

    text = console.file.getvalue()
    assert "Run Summary" in text
    assert "Upload id" in text
    assert "plan.json" in text


def test_summary_table_disabled_prints_nothing() -> None:
    console = _console()
    render_run_summary_table(enabled=False, status="OK", metrics={}, outdir="out", console=console)
    assert console.file.getvalue() == ""
