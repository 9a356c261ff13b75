from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

_INDEX_SUFFIX_RE = re.compile(r"\[\d+\]")

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_NOOP = "no-op"
ACTION_EXISTING = "existing"
ACTION_EXTERNAL = "external"

# Highest priority first; decides the colour of a whole Node.
ACTION_PRIORITY: Tuple[str, ...] = (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    ACTION_EXTERNAL,
    ACTION_EXISTING,
)

AdjacencyList = Dict[str, List[str]]
EdgePair = Tuple[str, str]


def canonical_path(address: str) -> str:
    """Strip every numeric `[n]` index from a resource address."""
    return _INDEX_SUFFIX_RE.sub("", address or "")


@dataclass
class Change:
    actions: List[str] = field(default_factory=list)
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    diff: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> Change:
        raw = raw or {}
        before = raw.get("before")
        after = raw.get("after")
        diff = raw.get("diff")
        return cls(
            actions=[str(a) for a in (raw.get("actions") or [])],
            before=dict(before) if isinstance(before, Mapping) else None,
            after=dict(after) if isinstance(after, Mapping) else None,
            diff=dict(diff) if isinstance(diff, Mapping) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"actions": list(self.actions)}
        if self.before is not None:
            out["before"] = self.before
        if self.after is not None:
            out["after"] = self.after
        if self.diff is not None:
            out["diff"] = self.diff
        return out


@dataclass
class Resource:
    """One plan-reported change (or a placeholder for prior state / externals)."""

    address: str
    change: Change = field(default_factory=Change)
    # Remaining raw fields of the source record (type, name, module_address, depends_on, ...)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, change: Optional[Change] = None) -> Resource:
        attributes = {k: v for k, v in record.items() if k not in ("address", "change")}
        return cls(
            address=str(record.get("address") or ""),
            change=change if change is not None else Change.from_dict(record.get("change")),
            attributes=copy.deepcopy(attributes),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.attributes)
        out["address"] = self.address
        out["change"] = self.change.to_dict()
        return out


@dataclass
class Node:
    resources: Dict[str, Resource] = field(default_factory=dict)
    edges_new: List[str] = field(default_factory=list)
    edges_existing: List[str] = field(default_factory=list)
    tier: Optional[int] = None
    enrichment: Optional[Dict[str, Any]] = None

    def actions(self) -> Set[str]:
        found: Set[str] = set()
        for resource in self.resources.values():
            found.update(resource.change.actions)
        return found

    def primary_action(self) -> str:
        found = self.actions()
        for action in ACTION_PRIORITY[:-1]:
            if action in found:
                return action
        return ACTION_EXISTING

    def has_edges(self) -> bool:
        return bool(self.edges_new or self.edges_existing)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "resources": {addr: r.to_dict() for addr, r in self.resources.items()},
            "edges_new": list(self.edges_new),
            "edges_existing": list(self.edges_existing),
        }
        if self.tier is not None:
            out["tier"] = self.tier
        if self.enrichment is not None:
            out["enrichment"] = self.enrichment
        return out


NodeModel = Dict[str, Node]


def add_unique(items: List[str], value: str) -> bool:
    if value in items:
        return False
    items.append(value)
    return True


def clone_model(model: Mapping[str, Node]) -> NodeModel:
    return copy.deepcopy(dict(model))


def model_to_dict(model: Mapping[str, Node]) -> Dict[str, Any]:
    return {path: node.to_dict() for path, node in model.items()}


def model_from_dict(data: Mapping[str, Any]) -> NodeModel:
    """Inverse of `model_to_dict`; used when re-rendering stored uploads."""
    model: NodeModel = {}
    for path, raw in data.items():
        if not isinstance(raw, Mapping):
            continue
        resources = {
            str(addr): Resource.from_record(rec)
            for addr, rec in (raw.get("resources") or {}).items()
            if isinstance(rec, Mapping)
        }
        tier = raw.get("tier")
        model[str(path)] = Node(
            resources=resources,
            edges_new=[str(e) for e in raw.get("edges_new") or []],
            edges_existing=[str(e) for e in raw.get("edges_existing") or []],
            tier=int(tier) if isinstance(tier, int) else None,
            enrichment=dict(raw["enrichment"]) if isinstance(raw.get("enrichment"), Mapping) else None,
        )
    return model


def edge_pairs(model: Mapping[str, Node]) -> List[EdgePair]:
    """
    Unique undirected edges over both edge sets, as sorted pairs, in first-seen
    order. Endpoints that are not Nodes and self-loops are skipped.
    """
    seen: Set[EdgePair] = set()
    pairs: List[EdgePair] = []
    for path, node in model.items():
        for target in _unique(list(node.edges_new) + list(node.edges_existing)):
            if target == path or target not in model:
                continue
            a, b = sorted((path, target))
            pair = (a, b)
            if pair in seen:
                continue
            seen.add(pair)
            pairs.append(pair)
    return pairs


def _unique(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    nodes_json: Path
    scene_json: Path
    run_log: Path


def resolve_output_paths(outdir: Path) -> OutputPaths:
    return OutputPaths(
        root=outdir,
        nodes_json=outdir / "nodes.json",
        scene_json=outdir / "diagram.excalidraw",
        run_log=outdir / "run.log",
    )
