"""
Tier-aware force-directed placement.

The simulation follows d3-force semantics: a cooling `alpha` that decays from 1
towards `alpha_min` over `iterations` ticks, forces that add to particle
velocities, and velocity decay applied when positions are integrated. Forces run
in the order many-body, link, center, collide on every tick.

Particle state lives in numpy arrays and every force is applied to all
particles at once. Pairwise forces are exact (no Barnes-Hut approximation).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..logging import get_logger
from ..normalize.schema import EdgePair
from ..util.errors import LayoutDegenerate
from ..util.ids import IdSource

LOG = get_logger(__name__)

DEFAULT_ITERATIONS = 300
DEFAULT_MARGIN = 50.0
_INITIAL_RADIUS = 10.0
_INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


@dataclass(frozen=True)
class TierStyle:
    width: float
    height: float
    font_size: int
    charge: float
    collide: float
    stroke_width: int
    icon_size: float


TIER_STYLES: Mapping[int, TierStyle] = {
    1: TierStyle(width=300, height=100, font_size=16, charge=-3000, collide=210, stroke_width=3, icon_size=55),
    2: TierStyle(width=260, height=70, font_size=14, charge=-1200, collide=160, stroke_width=2, icon_size=40),
    3: TierStyle(width=220, height=60, font_size=12, charge=-500, collide=130, stroke_width=1, icon_size=0),
}


def tier_style(tier: Optional[int]) -> TierStyle:
    return TIER_STYLES.get(tier or 2, TIER_STYLES[2])


@dataclass(frozen=True)
class LayoutConfig:
    iterations: int = DEFAULT_ITERATIONS
    margin: float = DEFAULT_MARGIN
    alpha_min: float = 0.001
    velocity_decay: float = 0.4
    center: Tuple[float, float] = (0.0, 0.0)
    # Spread of the seeded jitter added to the phyllotaxis start positions.
    initial_jitter: float = 1.0
    # Link rest length: both ends tier 1 / one end tier 1 / neither.
    link_distance_major: float = 500.0
    link_distance_mixed: float = 250.0
    link_distance_minor: float = 200.0
    # Link stiffness: both ends tier 2/3 / otherwise.
    link_strength_minor: float = 0.7
    link_strength_default: float = 1.2
    tier_styles: Mapping[int, TierStyle] = field(default_factory=lambda: dict(TIER_STYLES))

    def style(self, tier: int) -> TierStyle:
        return self.tier_styles.get(tier) or tier_style(tier)


@dataclass
class _Springs:
    source: np.ndarray
    target: np.ndarray
    distance: np.ndarray
    strength: np.ndarray
    bias: np.ndarray

    def __len__(self) -> int:
        return int(self.source.size)


class ForceLayoutEngine:
    """
    Positions Nodes (given as path -> tier) connected by undirected edges.

    Every run executes exactly `config.iterations` ticks. Randomness (start
    jitter, separation of coincident particles) comes from `ids`, so the same
    seed reproduces the same layout.
    """

    def __init__(self, config: Optional[LayoutConfig] = None, *, ids: Optional[IdSource] = None) -> None:
        self.config = config or LayoutConfig()
        self._ids = ids or IdSource()
        self.ticks_run = 0

    # ------------------------------------------------------------------
    def layout(self, tiers: Mapping[str, int], edges: Sequence[EdgePair]) -> Dict[str, Tuple[float, float]]:
        if not tiers:
            raise LayoutDegenerate("Cannot lay out an empty graph")

        node_ids = list(tiers)
        tier = np.array([int(tiers[n]) for n in node_ids], dtype=np.int64)
        charge = np.array([self.config.style(int(t)).charge for t in tier], dtype=float)
        radius = np.array([self.config.style(int(t)).collide for t in tier], dtype=float)
        pos = self._initial_positions(len(node_ids))
        vel = np.zeros_like(pos)
        springs = self._init_springs({n: i for i, n in enumerate(node_ids)}, tier, edges)

        cfg = self.config
        alpha = 1.0
        alpha_decay = 1 - math.pow(cfg.alpha_min, 1.0 / max(cfg.iterations, 1))
        keep_velocity = 1 - cfg.velocity_decay
        self.ticks_run = 0

        for _ in range(cfg.iterations):
            alpha += (0.0 - alpha) * alpha_decay
            self._apply_many_body(pos, vel, charge, alpha)
            self._apply_links(pos, vel, springs, alpha)
            self._apply_center(pos)
            self._apply_collide(pos, vel, radius)
            vel *= keep_velocity
            pos += vel
            self.ticks_run += 1

        LOG.debug(
            "Force layout finished",
            extra={"node_count": len(node_ids), "link_count": len(springs), "ticks": self.ticks_run},
        )
        return self._normalize(node_ids, pos)

    # ------------------------------------------------------------------
    def _jiggle(self, values: np.ndarray, where: Optional[np.ndarray] = None) -> np.ndarray:
        """Replace exact zeros (restricted to `where`) with tiny seeded offsets, in place."""
        zero = values == 0
        if where is not None:
            zero &= where
        idx = np.flatnonzero(zero)
        if idx.size:
            values.flat[idx] = [(self._ids.random() - 0.5) * 1e-6 for _ in range(idx.size)]
        return values

    def _initial_positions(self, n: int) -> np.ndarray:
        # phyllotaxis spiral plus seeded jitter
        jitter = self.config.initial_jitter
        pos = np.empty((n, 2), dtype=float)
        for i in range(n):
            r = _INITIAL_RADIUS * math.sqrt(0.5 + i)
            angle = i * _INITIAL_ANGLE
            pos[i, 0] = r * math.cos(angle) + (self._ids.random() - 0.5) * jitter
            pos[i, 1] = r * math.sin(angle) + (self._ids.random() - 0.5) * jitter
        return pos

    def _init_springs(self, index: Mapping[str, int], tier: np.ndarray, edges: Sequence[EdgePair]) -> _Springs:
        cfg = self.config
        source: List[int] = []
        target: List[int] = []
        for a, b in edges:
            i = index.get(a)
            j = index.get(b)
            if i is None or j is None or i == j:
                LOG.debug("Skipping link with unknown endpoint", extra={"source": a, "target": b})
                continue
            source.append(i)
            target.append(j)

        src = np.array(source, dtype=np.int64)
        tgt = np.array(target, dtype=np.int64)
        major_s = tier[src] == 1
        major_t = tier[tgt] == 1
        distance = np.where(
            major_s & major_t,
            cfg.link_distance_major,
            np.where(major_s | major_t, cfg.link_distance_mixed, cfg.link_distance_minor),
        ).astype(float)
        strength = np.where(
            (tier[src] >= 2) & (tier[tgt] >= 2), cfg.link_strength_minor, cfg.link_strength_default
        ).astype(float)

        degree = np.bincount(np.concatenate([src, tgt]), minlength=tier.size).astype(float)
        if src.size:
            bias = degree[src] / (degree[src] + degree[tgt])
        else:
            bias = np.zeros(0, dtype=float)
        return _Springs(source=src, target=tgt, distance=distance, strength=strength, bias=bias)

    # Forces -------------------------------------------------------------
    def _apply_many_body(self, pos: np.ndarray, vel: np.ndarray, charge: np.ndarray, alpha: float) -> None:
        n = pos.shape[0]
        if n < 2:
            return
        off_diagonal = ~np.eye(n, dtype=bool)
        # row i holds the offsets from particle i to every other particle
        dx = self._jiggle(pos[None, :, 0] - pos[:, None, 0], off_diagonal)
        dy = self._jiggle(pos[None, :, 1] - pos[:, None, 1], off_diagonal)
        dist2 = dx * dx + dy * dy
        dist2 = np.where(dist2 < 1, np.sqrt(dist2), dist2)
        dist2[~off_diagonal] = 1.0
        w = charge[None, :] * alpha / dist2
        w[~off_diagonal] = 0.0
        vel[:, 0] += (dx * w).sum(axis=1)
        vel[:, 1] += (dy * w).sum(axis=1)

    def _apply_links(self, pos: np.ndarray, vel: np.ndarray, springs: _Springs, alpha: float) -> None:
        if not len(springs):
            return
        src, tgt = springs.source, springs.target
        x = self._jiggle(pos[tgt, 0] + vel[tgt, 0] - pos[src, 0] - vel[src, 0])
        y = self._jiggle(pos[tgt, 1] + vel[tgt, 1] - pos[src, 1] - vel[src, 1])
        length = np.sqrt(x * x + y * y)
        k = (length - springs.distance) / length * alpha * springs.strength
        shift = np.stack([x * k, y * k], axis=1)
        bias = springs.bias[:, None]
        np.subtract.at(vel, tgt, shift * bias)
        np.add.at(vel, src, shift * (1 - bias))

    def _apply_center(self, pos: np.ndarray) -> None:
        pos -= pos.mean(axis=0) - np.asarray(self.config.center, dtype=float)

    def _apply_collide(self, pos: np.ndarray, vel: np.ndarray, radius: np.ndarray) -> None:
        n = pos.shape[0]
        if n < 2:
            return
        ahead = pos + vel
        i, j = np.triu_indices(n, k=1)
        x = ahead[i, 0] - ahead[j, 0]
        y = ahead[i, 1] - ahead[j, 1]
        reach = radius[i] + radius[j]
        overlapping = x * x + y * y < reach * reach
        if not overlapping.any():
            return

        i, j, reach = i[overlapping], j[overlapping], reach[overlapping]
        x = self._jiggle(x[overlapping])
        y = self._jiggle(y[overlapping])
        dist = np.sqrt(x * x + y * y)
        k = (reach - dist) / dist
        ri2 = radius[i] * radius[i]
        rj2 = radius[j] * radius[j]
        share = (rj2 / (ri2 + rj2))[:, None]
        shift = np.stack([x * k, y * k], axis=1)
        np.add.at(vel, i, shift * share)
        np.subtract.at(vel, j, shift * (1 - share))

    # ------------------------------------------------------------------
    def _normalize(self, node_ids: Sequence[str], pos: np.ndarray) -> Dict[str, Tuple[float, float]]:
        shifted = pos - pos.min(axis=0) + self.config.margin
        return {node_id: (float(x), float(y)) for node_id, (x, y) in zip(node_ids, shifted)}
