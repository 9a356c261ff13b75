from __future__ import annotations

from typing import Mapping, Optional

from ..normalize.schema import Node, NodeModel, clone_model
from .base import Enricher, Enrichment
from .default import KeywordEnricher

__all__ = ["Enricher", "Enrichment", "KeywordEnricher", "apply_enrichment"]


def apply_enrichment(model: Mapping[str, Node], enricher: Optional[Enricher] = None) -> NodeModel:
    """Attach each Node's advisory annotation; falls back to the keyword table."""
    enricher = enricher or KeywordEnricher()
    nodes = clone_model(model)
    for path, node in nodes.items():
        node.enrichment = enricher.enrich(path, node).to_dict()
    return nodes
