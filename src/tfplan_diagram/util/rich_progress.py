from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..store.uploads import UploadRecord


class PipelineProgress:
    """
    Transient progress bar over the pipeline stages plus scene synthesis.
    Disabled instances accept every call and do nothing.
    """

    def __init__(self, stages: Sequence[str], *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._stages = list(stages)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[int] = None
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[stage]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> PipelineProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._started = True
            self._task = self._progress.add_task("Pipeline", total=len(self._stages), stage="")
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def stage_done(self, name: str) -> None:
        if not self._enabled or not self._progress or self._task is None:
            return
        self._progress.update(self._task, advance=1, stage=name)

    def add_stage(self, name: str) -> None:
        """Extend the bar for a step outside the node-model pipeline (e.g. scene)."""
        if name in self._stages:
            return
        self._stages.append(name)
        if self._enabled and self._progress and self._task is not None:
            self._progress.update(self._task, total=len(self._stages))


def render_run_summary_table(
    *,
    enabled: bool,
    status: str,
    metrics: Dict[str, Any],
    outdir: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Run Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Status", status)
    table.add_row("Nodes", str(metrics.get("node_count", 0)))
    table.add_row("Edges", str(metrics.get("edge_count", 0)))
    table.add_row("Scene elements", str(metrics.get("element_count", 0)))
    if metrics.get("upload_id") is not None:
        table.add_row("Upload id", str(metrics["upload_id"]))
    table.add_row("Output dir", outdir)
    (console or Console(stderr=True)).print(table)


def render_uploads_table(records: Sequence[UploadRecord], *, console: Optional[Console] = None) -> None:
    table = Table(title="Uploads", show_header=True, header_style="bold")
    table.add_column("Id", style="cyan", justify="right")
    table.add_column("Plan")
    table.add_column("Graph")
    table.add_column("Nodes", justify="right")
    table.add_column("Created")
    for r in records:
        table.add_row(
            str(r.id),
            r.plan_filename or "",
            r.dot_filename or "",
            "" if r.node_count is None else str(r.node_count),
            r.created_at,
        )
    (console or Console()).print(table)
