from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..graph.tiers import resource_type, tier_for
from ..layout.force import ForceLayoutEngine, LayoutConfig
from ..logging import get_logger
from ..normalize.schema import ACTION_EXISTING, ACTION_EXTERNAL, Node, edge_pairs
from ..util.errors import ExportError
from ..util.ids import IdSource
from ..util.serialization import write_json
from .icons import Element, IconLibrary, clone_icon_elements

LOG = get_logger(__name__)

SCENE_TYPE = "excalidraw"
SCENE_VERSION = 2
SCENE_SOURCE = "tfplan-diagram"

ICON_PAD = 12
LABEL_INSET = 8
DEFAULT_STROKE = "#1e1e1e"

ACTION_COLORS: Mapping[str, str] = {
    "create": "#d3f9d8",
    "delete": "#ffe3e3",
    "update": "#fff3bf",
    "existing": "#e7f5ff",
    "external": "#f8f9fa",
    "no-op": "#e7f5ff",
}

ACTION_STROKE: Mapping[str, str] = {
    "create": "#2b8a3e",
    "delete": "#c92a2a",
    "update": "#e67700",
    "existing": "#1971c2",
    "external": "#868e96",
    "no-op": "#1971c2",
}

FixedPoint = Tuple[float, float]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def point(self, fixed: FixedPoint) -> Tuple[float, float]:
        return self.x + fixed[0] * self.width, self.y + fixed[1] * self.height


def node_label(node_path: str) -> str:
    """`module.a.module.b.aws_x.y` -> "a.b\\naws_x.y"; root resources get one line."""
    parts = node_path.split(".")
    module_parts: List[str] = []
    resource_parts: List[str] = []
    i = 0
    while i < len(parts):
        if parts[i] == "module" and i + 1 < len(parts):
            module_parts.append(parts[i + 1])
            i += 2
            continue
        resource_parts = parts[i:]
        break
    lines = []
    if module_parts:
        lines.append(".".join(module_parts))
    lines.append(".".join(resource_parts))
    return "\n".join(lines)


def binding_points(a: Box, b: Box) -> Tuple[FixedPoint, FixedPoint]:
    """
    Faces used to attach a connector from `a` to `b`. The dominant axis of the
    centre displacement picks left/right or top/bottom; ties go horizontal.
    """
    ax, ay = a.center
    bx, by = b.center
    dx = bx - ax
    dy = by - ay
    if abs(dx) >= abs(dy):
        if dx >= 0:
            return (1.0, 0.5), (0.0, 0.5)
        return (0.0, 0.5), (1.0, 0.5)
    if dy >= 0:
        return (0.5, 1.0), (0.5, 0.0)
    return (0.5, 0.0), (0.5, 1.0)


def base_element(ids: IdSource, **overrides: Any) -> Element:
    element: Element = {
        "angle": 0,
        "strokeColor": DEFAULT_STROKE,
        "backgroundColor": "transparent",
        "fillStyle": "solid",
        "strokeWidth": 2,
        "strokeStyle": "solid",
        "roughness": 1,
        "opacity": 100,
        "seed": ids.rand_int(),
        "version": 1,
        "versionNonce": ids.rand_int(),
        "isDeleted": False,
        "groupIds": [],
        "frameId": None,
        "boundElements": None,
        "locked": False,
        "link": None,
        "updated": ids.now_ms(),
    }
    element.update(overrides)
    return element


def empty_scene() -> Dict[str, Any]:
    return {
        "type": SCENE_TYPE,
        "version": SCENE_VERSION,
        "source": SCENE_SOURCE,
        "elements": [],
        "appState": {"viewBackgroundColor": "#ffffff", "gridSize": None},
    }


class DiagramSynthesizer:
    """
    Lays out a node model and emits an Excalidraw scene: one rectangle plus bound
    label per Node (with an icon for tiers that allow one), one double-headed
    arrow per unique edge bound to both rectangles.
    """

    def __init__(
        self,
        icons: Optional[IconLibrary] = None,
        *,
        ids: Optional[IdSource] = None,
        layout_config: Optional[LayoutConfig] = None,
    ) -> None:
        self.icons = icons or IconLibrary()
        self.ids = ids or IdSource()
        self.layout_config = layout_config or LayoutConfig()

    def synthesize(self, model: Mapping[str, Node]) -> Dict[str, Any]:
        scene = empty_scene()
        if not model:
            LOG.info("Empty node model; emitting empty scene")
            return scene

        paths = list(model.keys())
        tiers = {path: model[path].tier or tier_for(path) for path in paths}
        pairs = edge_pairs(model)

        engine = ForceLayoutEngine(self.layout_config, ids=self.ids)
        positions = engine.layout(tiers, pairs)

        elements: List[Element] = []
        rects: Dict[str, Element] = {}
        boxes: Dict[str, Box] = {}

        for i, path in enumerate(paths):
            x, y = positions[path]
            style = self.layout_config.style(tiers[path])
            box = Box(x, y, style.width, style.height)
            rect, node_elements = self._node_elements(i, path, model[path], box, tiers[path])
            rects[path] = rect
            boxes[path] = box
            elements.extend(node_elements)

        for n, (a, b) in enumerate(pairs):
            elements.append(self._connector(f"arrow-{n}", rects[a], boxes[a], rects[b], boxes[b]))

        scene["elements"] = elements
        LOG.info(
            "Scene synthesized",
            extra={"node_count": len(paths), "edge_count": len(pairs), "element_count": len(elements)},
        )
        return scene

    # ------------------------------------------------------------------
    def _node_elements(self, index: int, path: str, node: Node, box: Box, tier: int) -> Tuple[Element, List[Element]]:
        ids = self.ids
        style = self.layout_config.style(tier)
        rect_id = f"rect-{index}"
        text_id = f"text-{index}"
        action = node.primary_action()
        label = node_label(path)

        icon = self.icons.elements_for(resource_type(path)) if style.icon_size > 0 else None
        icon_area = style.icon_size + ICON_PAD if icon else 0

        rect = base_element(
            ids,
            type="rectangle",
            id=rect_id,
            x=box.x,
            y=box.y,
            width=box.width,
            height=box.height,
            strokeColor=ACTION_STROKE.get(action, ACTION_STROKE[ACTION_EXISTING]),
            strokeWidth=style.stroke_width,
            backgroundColor=ACTION_COLORS.get(action, ACTION_COLORS[ACTION_EXISTING]),
            roundness={"type": 3},
            boundElements=[{"id": text_id, "type": "text"}],
            strokeStyle="dashed" if action == ACTION_EXTERNAL else "solid",
        )
        text = base_element(
            ids,
            type="text",
            id=text_id,
            x=box.x + icon_area + LABEL_INSET,
            y=box.y + 10,
            width=box.width - icon_area - 2 * LABEL_INSET,
            height=box.height - 20,
            text=label,
            fontSize=style.font_size,
            fontFamily=3,
            textAlign="left" if icon else "center",
            verticalAlign="middle",
            containerId=rect_id,
            originalText=label,
            autoResize=False,
            lineHeight=1.25,
            strokeColor=DEFAULT_STROKE,
        )
        out = [rect, text]
        if icon:
            out.extend(
                clone_icon_elements(
                    icon,
                    box.x + ICON_PAD,
                    box.y + (box.height - style.icon_size) / 2,
                    style.icon_size,
                    ids,
                )
            )
        return rect, out

    def _connector(self, arrow_id: str, rect_a: Element, box_a: Box, rect_b: Element, box_b: Box) -> Element:
        rect_a["boundElements"].append({"id": arrow_id, "type": "arrow"})
        rect_b["boundElements"].append({"id": arrow_id, "type": "arrow"})

        start_fixed, end_fixed = binding_points(box_a, box_b)
        start_x, start_y = box_a.point(start_fixed)
        end_x, end_y = box_b.point(end_fixed)

        return base_element(
            self.ids,
            type="arrow",
            id=arrow_id,
            x=start_x,
            y=start_y,
            width=abs(end_x - start_x),
            height=abs(end_y - start_y),
            points=[[0, 0], [end_x - start_x, end_y - start_y]],
            startBinding={"elementId": rect_a["id"], "fixedPoint": list(start_fixed), "mode": "orbit"},
            endBinding={"elementId": rect_b["id"], "fixedPoint": list(end_fixed), "mode": "orbit"},
            startArrowhead="arrow",
            endArrowhead="arrow",
            roundness={"type": 2},
        )


def build_scene(
    model: Mapping[str, Node],
    *,
    icons: Optional[IconLibrary] = None,
    ids: Optional[IdSource] = None,
    layout_config: Optional[LayoutConfig] = None,
) -> Dict[str, Any]:
    return DiagramSynthesizer(icons, ids=ids, layout_config=layout_config).synthesize(model)


def write_scene(path: Path, scene: Mapping[str, Any]) -> Path:
    try:
        return write_json(path, dict(scene))
    except OSError as e:
        raise ExportError(f"Failed to write scene to {path}: {e}") from e
