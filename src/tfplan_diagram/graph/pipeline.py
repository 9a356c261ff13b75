from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple

from ..enrich import Enricher, apply_enrichment
from ..logging import get_logger
from ..normalize.schema import AdjacencyList, NodeModel
from ..parse.plan import prior_root_module, resource_changes, validate_plan
from ..util.timing import StepTimers, log_event
from .builder import build_nodes
from .diff import compute_resource_diffs
from .edges import resolve_existing_edges, resolve_new_edges
from .external import synthesize_external_nodes
from .sanitize import sanitize_graph
from .tiers import assign_tiers

LOG = get_logger(__name__)

StageHook = Callable[[str], None]

STAGE_NAMES: Tuple[str, ...] = (
    "build",
    "new_edges",
    "diffs",
    "existing_edges",
    "externals",
    "sanitize",
    "tiers",
    "enrich",
)


def build_node_model(
    plan: Mapping[str, Any],
    adjacency: AdjacencyList,
    *,
    enricher: Optional[Enricher] = None,
    on_stage: Optional[StageHook] = None,
) -> NodeModel:
    """
    Run the graph-construction stages over a parsed plan and adjacency list:
    build -> new edges -> diffs -> existing edges -> externals -> sanitize ->
    tiers -> enrichment. Each stage returns a fresh model.
    """
    plan = validate_plan(dict(plan))
    root_module = prior_root_module(plan)
    timers = StepTimers()

    stages: List[Tuple[str, Callable[[NodeModel], NodeModel]]] = [
        ("new_edges", lambda m: resolve_new_edges(m, adjacency)),
        ("diffs", compute_resource_diffs),
        ("existing_edges", lambda m: resolve_existing_edges(m, root_module)),
        ("externals", synthesize_external_nodes),
        ("sanitize", sanitize_graph),
        ("tiers", assign_tiers),
        ("enrich", lambda m: apply_enrichment(m, enricher)),
    ]

    log_event(LOG, logging.DEBUG, "Building nodes", step="build", phase="start", timers=timers)
    model = build_nodes(resource_changes(plan))
    log_event(LOG, logging.DEBUG, "Built nodes", step="build", phase="complete", timers=timers, node_count=len(model))
    if on_stage:
        on_stage("build")

    for name, stage in stages:
        log_event(LOG, logging.DEBUG, f"Stage {name} started", step=name, phase="start", timers=timers)
        model = stage(model)
        log_event(
            LOG,
            logging.DEBUG,
            f"Stage {name} complete",
            step=name,
            phase="complete",
            timers=timers,
            node_count=len(model),
        )
        if on_stage:
            on_stage(name)

    LOG.info(
        "Node model built",
        extra={"node_count": len(model), "has_prior_state": root_module is not None},
    )
    return model

