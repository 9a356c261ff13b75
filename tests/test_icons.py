from __future__ import annotations

import json

import pytest

from tfplan_diagram.export.icons import IconLibrary, clone_icon_elements
from tfplan_diagram.util.ids import IdSource

ELEMENTS = [
    {"type": "rectangle", "id": "a", "x": 100, "y": 100, "width": 20, "height": 10, "groupIds": ["g1"]},
    {
        "type": "line",
        "id": "b",
        "x": 110,
        "y": 105,
        "width": 10,
        "height": 10,
        "groupIds": ["g1", "g2"],
        "points": [[0, 0], [10, 10]],
    },
]


def test_clone_scales_recentres_and_remaps_ids() -> None:
    ids = IdSource(1)

    cloned = clone_icon_elements(ELEMENTS, 0, 0, 55, ids)

    # bounds 20 x 15 scale by 55 / 20 and centre vertically
    first, second = cloned
    assert first["x"] == pytest.approx(0.0)
    assert first["y"] == pytest.approx((55 - 15 * 2.75) / 2)
    assert first["width"] == pytest.approx(55.0)
    assert first["height"] == pytest.approx(27.5)
    assert second["points"] == [[0, 0], [27.5, 27.5]]

    assert all(e["id"].startswith("ic-") for e in cloned)
    assert first["groupIds"][0] == second["groupIds"][0]
    assert first["groupIds"][0].startswith("ico-")
    assert first["groupIds"][1] == second["groupIds"][1]
    assert second["groupIds"][2].startswith("icg-")
    # source elements are untouched
    assert ELEMENTS[0]["id"] == "a" and ELEMENTS[0]["x"] == 100


def test_two_clones_share_no_groups() -> None:
    ids = IdSource(2)
    one = clone_icon_elements(ELEMENTS, 0, 0, 40, ids)
    two = clone_icon_elements(ELEMENTS, 0, 0, 40, ids)

    groups_one = {g for e in one for g in e["groupIds"]}
    groups_two = {g for e in two for g in e["groupIds"]}
    assert groups_one.isdisjoint(groups_two)


def test_load_v2_and_v1_libraries(tmp_path) -> None:
    v2 = tmp_path / "v2.excalidrawlib"
    v2.write_text(json.dumps({"type": "excalidrawlib", "version": 2, "libraryItems": [{"elements": ELEMENTS}]}))
    v1 = tmp_path / "v1.excalidrawlib"
    v1.write_text(json.dumps({"type": "excalidrawlib", "version": 1, "library": [ELEMENTS]}))

    for path in (v2, v1):
        library = IconLibrary.load(path)
        assert len(library) == 1
        assert library.elements_for("aws_lambda_function") == ELEMENTS
        assert library.elements_for("aws_s3_bucket") is None
        assert library.elements_for("aws_kms_key") is None


def test_missing_or_broken_library_is_empty(tmp_path) -> None:
    broken = tmp_path / "broken.excalidrawlib"
    broken.write_text("{nope", encoding="utf-8")

    assert len(IconLibrary.load(tmp_path / "missing.excalidrawlib")) == 0
    assert len(IconLibrary.load(broken)) == 0
    assert len(IconLibrary.load(None)) == 0
