from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .layout.force import DEFAULT_ITERATIONS, DEFAULT_MARGIN

# --------
# Defaults
# --------
DEFAULT_OUTDIR = Path("out")
DEFAULT_DB_PATH = Path(".tfplan_diagram") / "uploads.db"
COMMANDS = ("render", "nodes", "show", "list-uploads")
ALLOWED_CONFIG_KEYS = {
    "outdir",
    "db_path",
    "icon_library",
    "iterations",
    "margin",
    "seed",
    "json_logs",
    "log_level",
    "progress",
    "store",
}
BOOL_CONFIG_KEYS = {"json_logs", "progress", "store"}
INT_CONFIG_KEYS = {"iterations", "seed"}
FLOAT_CONFIG_KEYS = {"margin"}
PATH_CONFIG_KEYS = {"outdir", "db_path", "icon_library"}
STR_CONFIG_KEYS = {"log_level"}


@dataclass(frozen=True)
class RunConfig:
    # Inputs
    plan: Optional[Path] = None
    graph: Optional[Path] = None
    upload_id: Optional[int] = None

    # Outputs
    outdir: Path = DEFAULT_OUTDIR
    scene_only: bool = False
    store: bool = True
    db_path: Path = DEFAULT_DB_PATH

    # Rendering
    icon_library: Optional[Path] = None
    iterations: int = DEFAULT_ITERATIONS
    margin: float = DEFAULT_MARGIN
    seed: Optional[int] = None  # None = non-deterministic ids and layout

    # Logging / console
    json_logs: bool = False
    log_level: str = "INFO"
    progress: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _env_bool(name: str) -> Optional[bool]:
    raw = _env_str(name)
    if raw is None:
        return None
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(name: str) -> Optional[float]:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be a number")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS or value is None:
            continue
        if key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in PATH_CONFIG_KEYS:
            if not isinstance(value, (str, Path)):
                raise ValueError(f"Config field '{key}' must be a string path")
            normalized[key] = value
        elif key in STR_CONFIG_KEYS:
            if not isinstance(value, str):
                raise ValueError(f"Config field '{key}' must be a string")
            normalized[key] = value
    return normalized


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(a)
    merged.update(b)
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tfplan-diagram", description="Terraform plan to Excalidraw diagram")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--json-logs", action=argparse.BooleanOptionalAction, default=None, help="Enable JSON logs")
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--db", dest="db_path", type=Path, default=None, help="Upload store (SQLite) path")
        p.add_argument(
            "--progress",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Show a progress display for pipeline stages",
        )

    def add_render(p: argparse.ArgumentParser) -> None:
        p.add_argument("--outdir", type=Path, default=None, help=f"Output directory (default {DEFAULT_OUTDIR})")
        p.add_argument("--icon-library", type=Path, default=None, help="Excalidraw .excalidrawlib with AWS icons")
        p.add_argument(
            "--iterations", type=int, default=None, help=f"Layout ticks (default {DEFAULT_ITERATIONS})"
        )
        p.add_argument("--margin", type=float, default=None, help=f"Canvas margin (default {DEFAULT_MARGIN:g})")
        p.add_argument("--seed", type=int, default=None, help="Seed ids and layout for reproducible output")

    def add_inputs(p: argparse.ArgumentParser) -> None:
        p.add_argument("--plan", type=Path, required=True, help="Plan JSON from `terraform show -json`")
        p.add_argument("--graph", type=Path, required=True, help="DOT output of `terraform graph`")

    p_render = subparsers.add_parser("render", help="Build the node model and the diagram scene")
    add_common(p_render)
    add_inputs(p_render)
    add_render(p_render)
    p_render.add_argument(
        "--scene-only",
        action="store_true",
        default=None,
        help="Write only diagram.excalidraw",
    )
    p_render.add_argument(
        "--store",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Record the node model in the upload store (default on)",
    )

    p_nodes = subparsers.add_parser("nodes", help="Build and write the node model only")
    add_common(p_nodes)
    add_inputs(p_nodes)
    p_nodes.add_argument("--outdir", type=Path, default=None, help=f"Output directory (default {DEFAULT_OUTDIR})")

    p_show = subparsers.add_parser("show", help="Render a stored upload")
    add_common(p_show)
    add_render(p_show)
    p_show.add_argument("--id", dest="upload_id", type=int, required=True, help="Upload id")

    p_list = subparsers.add_parser("list-uploads", help="List stored uploads")
    add_common(p_list)

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is one of: render|nodes|show|list-uploads
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "outdir": DEFAULT_OUTDIR,
        "db_path": DEFAULT_DB_PATH,
        "icon_library": None,
        "iterations": DEFAULT_ITERATIONS,
        "margin": DEFAULT_MARGIN,
        "seed": None,
        "json_logs": False,
        "log_level": "INFO",
        "progress": False,
        "store": True,
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "outdir": _env_str("TFPD_OUTDIR"),
            "db_path": _env_str("TFPD_DB_PATH"),
            "icon_library": _env_str("TFPD_ICON_LIBRARY"),
            "iterations": _env_int("TFPD_ITERATIONS"),
            "margin": _env_float("TFPD_MARGIN"),
            "seed": _env_int("TFPD_SEED"),
            "json_logs": _env_bool("TFPD_JSON_LOGS"),
            "log_level": _env_str("TFPD_LOG_LEVEL"),
            "progress": _env_bool("TFPD_PROGRESS"),
            "store": _env_bool("TFPD_STORE"),
        }
    )

    cli_cfg: Dict[str, Any] = _compact_dict({key: getattr(ns, key, None) for key in ALLOWED_CONFIG_KEYS})

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    iterations = int(merged["iterations"])
    if iterations < 0:
        raise ValueError("iterations must be >= 0")
    margin = float(merged["margin"])
    if margin < 0:
        raise ValueError("margin must be >= 0")

    cfg = RunConfig(
        plan=getattr(ns, "plan", None),
        graph=getattr(ns, "graph", None),
        upload_id=getattr(ns, "upload_id", None),
        outdir=Path(merged["outdir"]),
        scene_only=bool(getattr(ns, "scene_only", None)),
        store=bool(merged["store"]),
        db_path=Path(merged["db_path"]),
        icon_library=Path(merged["icon_library"]) if merged.get("icon_library") else None,
        iterations=iterations,
        margin=margin,
        seed=int(merged["seed"]) if merged.get("seed") is not None else None,
        json_logs=bool(merged["json_logs"]),
        log_level=str(merged.get("log_level") or "INFO").upper(),
        progress=bool(merged["progress"]),
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "plan": str(cfg.plan) if cfg.plan else None,
        "graph": str(cfg.graph) if cfg.graph else None,
        "upload_id": cfg.upload_id,
        "outdir": str(cfg.outdir),
        "scene_only": cfg.scene_only,
        "store": cfg.store,
        "db_path": str(cfg.db_path),
        "icon_library": str(cfg.icon_library) if cfg.icon_library else None,
        "iterations": cfg.iterations,
        "margin": cfg.margin,
        "seed": cfg.seed,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "progress": cfg.progress,
    }
