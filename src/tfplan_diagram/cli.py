from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .config import RunConfig, dump_config, load_run_config
from .export.excalidraw import build_scene, write_scene
from .export.icons import IconLibrary
from .graph.pipeline import STAGE_NAMES, build_node_model
from .layout.force import LayoutConfig
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .normalize.schema import NodeModel, edge_pairs, model_from_dict, model_to_dict, resolve_output_paths
from .parse.dot import load_dependency_graph
from .parse.plan import load_plan
from .store.uploads import UploadStore
from .util.errors import ConfigError, ExportError, as_exit_code
from .util.ids import IdSource
from .util.rich_progress import PipelineProgress, render_run_summary_table, render_uploads_table
from .util.serialization import write_json
from .util.timing import StepTimers, log_event

LOG = get_logger(__name__)

SCENE_STAGE = "scene"


def _layout_config(cfg: RunConfig) -> LayoutConfig:
    return LayoutConfig(iterations=cfg.iterations, margin=cfg.margin)


def _write_nodes(path: Path, data: Mapping[str, Any]) -> Path:
    try:
        return write_json(path, dict(data))
    except OSError as e:
        raise ExportError(f"Failed to write node model to {path}: {e}") from e


def _require_inputs(cfg: RunConfig) -> Tuple[Path, Path]:
    if not cfg.plan or not cfg.graph:
        raise ConfigError("Both --plan and --graph must be provided")
    return cfg.plan, cfg.graph


def _build_model(plan_path: Path, graph_path: Path, progress: PipelineProgress, timers: StepTimers) -> NodeModel:
    log_event(LOG, logging.INFO, "Parsing inputs", step="parse", phase="start", timers=timers)
    plan = load_plan(plan_path)
    adjacency = load_dependency_graph(graph_path)
    log_event(
        LOG,
        logging.INFO,
        "Inputs parsed",
        step="parse",
        phase="complete",
        timers=timers,
        resource_change_count=len(plan.get("resource_changes") or []),
        vertex_count=len(adjacency),
    )
    log_event(LOG, logging.INFO, "Pipeline started", step="pipeline", phase="start", timers=timers)
    model = build_node_model(plan, adjacency, on_stage=progress.stage_done)
    log_event(
        LOG,
        logging.INFO,
        "Pipeline complete",
        step="pipeline",
        phase="complete",
        timers=timers,
        node_count=len(model),
    )
    return model


def _render_scene(cfg: RunConfig, model: NodeModel, scene_path: Path, timers: StepTimers) -> Dict[str, Any]:
    icons = IconLibrary.load(cfg.icon_library)
    ids = IdSource(cfg.seed)
    log_event(LOG, logging.INFO, "Scene synthesis started", step="scene", phase="start", timers=timers)
    scene = build_scene(model, icons=icons, ids=ids, layout_config=_layout_config(cfg))
    write_scene(scene_path, scene)
    log_event(
        LOG,
        logging.INFO,
        "Scene written",
        step="scene",
        phase="complete",
        timers=timers,
        path=str(scene_path),
        element_count=len(scene["elements"]),
    )
    return scene


def cmd_render(cfg: RunConfig) -> int:
    timers = StepTimers()
    LOG.debug("Effective config", extra={"config": dump_config(cfg)})
    plan_path, graph_path = _require_inputs(cfg)
    progress = PipelineProgress(STAGE_NAMES, enabled=cfg.progress)
    with progress:
        model = _build_model(plan_path, graph_path, progress, timers)

        paths = resolve_output_paths(cfg.outdir)
        paths.root.mkdir(parents=True, exist_ok=True)
        add_run_log_file(paths.run_log)

        data = model_to_dict(model)
        if not cfg.scene_only:
            _write_nodes(paths.nodes_json, data)

        progress.add_stage(SCENE_STAGE)
        scene = _render_scene(cfg, model, paths.scene_json, timers)
        progress.stage_done(SCENE_STAGE)

    upload_id = None
    if cfg.store:
        with UploadStore(cfg.db_path) as store:
            upload_id = store.save(data, plan_filename=plan_path.name, dot_filename=graph_path.name)
        print(upload_id)

    render_run_summary_table(
        enabled=cfg.progress,
        status="OK",
        metrics={
            "node_count": len(model),
            "edge_count": len(edge_pairs(model)),
            "element_count": len(scene["elements"]),
            "upload_id": upload_id,
        },
        outdir=str(cfg.outdir),
    )
    return 0


def cmd_nodes(cfg: RunConfig) -> int:
    timers = StepTimers()
    plan_path, graph_path = _require_inputs(cfg)
    with PipelineProgress(STAGE_NAMES, enabled=cfg.progress) as progress:
        model = _build_model(plan_path, graph_path, progress, timers)
    paths = resolve_output_paths(cfg.outdir)
    _write_nodes(paths.nodes_json, model_to_dict(model))
    LOG.info("Node model written", extra={"path": str(paths.nodes_json), "node_count": len(model)})
    return 0


def cmd_show(cfg: RunConfig) -> int:
    if cfg.upload_id is None:
        raise ConfigError("--id must be provided for show")
    timers = StepTimers()
    with UploadStore(cfg.db_path) as store:
        data = store.get(cfg.upload_id)
    model = model_from_dict(data)
    paths = resolve_output_paths(cfg.outdir)
    _render_scene(cfg, model, paths.scene_json, timers)
    print(paths.scene_json)
    return 0


def cmd_list_uploads(cfg: RunConfig) -> int:
    with UploadStore(cfg.db_path) as store:
        records = store.list_uploads()
    render_uploads_table(records)
    return 0


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "render":
            code = cmd_render(cfg)
        elif command == "nodes":
            code = cmd_nodes(cfg)
        elif command == "show":
            code = cmd_show(cfg)
        elif command == "list-uploads":
            code = cmd_list_uploads(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when piping to `head`; avoid logging after stdout is closed.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e), "error_type": type(e).__name__})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
