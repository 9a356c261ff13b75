from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, runtime_checkable

from ..normalize.schema import Node


@dataclass(frozen=True)
class Enrichment:
    summary: str = ""
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


@runtime_checkable
class Enricher(Protocol):
    """
    Produces the advisory annotation for one Node.
    Implementations must not mutate the Node.
    """

    def enrich(self, node_path: str, node: Node) -> Enrichment:
        ...
