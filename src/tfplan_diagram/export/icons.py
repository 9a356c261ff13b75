from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..util.ids import IdSource

LOG = get_logger(__name__)

Element = Dict[str, Any]

# Item order of the aws-serverless.excalidrawlib library:
# 0 Lambda, 1 API Gateway, 2 AppSync, 3 DynamoDB, 4 EventBridge, 5 Cognito, 6 S3,
# 7 Kinesis, 8 SNS, 9 SQS, 10 SES, 11 CloudFront, 12 CloudWatch,
# 13 Step Functions, 14 Amplify
ICON_INDEX: Mapping[str, int] = {
    "aws_lambda_function": 0,
    "aws_api_gateway_rest_api": 1,
    "aws_apigatewayv2_api": 1,
    "aws_apigatewayv2_route": 1,
    "aws_appsync_graphql_api": 2,
    "aws_dynamodb_table": 3,
    "aws_dynamodb_global_table": 3,
    "aws_cloudwatch_event_rule": 4,
    "aws_scheduler_schedule": 4,
    "aws_cognito_user_pool": 5,
    "aws_cognito_identity_pool": 5,
    "aws_s3_bucket": 6,
    "aws_s3_bucket_object": 6,
    "aws_s3_object": 6,
    "aws_kinesis_stream": 7,
    "aws_kinesis_firehose_delivery_stream": 7,
    "aws_sns_topic": 8,
    "aws_sqs_queue": 9,
    "aws_ses_domain_identity": 10,
    "aws_ses_email_identity": 10,
    "aws_cloudfront_distribution": 11,
    "aws_cloudwatch_log_group": 12,
    "aws_cloudwatch_metric_alarm": 12,
    "aws_sfn_state_machine": 13,
    "aws_step_functions_state_machine": 13,
    "aws_amplify_app": 14,
}


class IconLibrary:
    """
    Read-only glyph sets loaded from an Excalidraw library file.

    Build one at startup and share it; nothing here mutates after construction.
    """

    def __init__(self, items: Sequence[Any] = (), *, index: Optional[Mapping[str, int]] = None) -> None:
        self._items = list(items)
        self._index = dict(index if index is not None else ICON_INDEX)

    @classmethod
    def load(cls, path: Optional[Path], *, index: Optional[Mapping[str, int]] = None) -> IconLibrary:
        """
        Accepts v2 (`libraryItems: [{elements, name}]`) and v1 (`library: [[...]]`)
        files. A missing or unreadable file yields an empty library.
        """
        if path is None:
            return cls((), index=index)
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            LOG.warning("Icon library unavailable; rendering without icons", extra={"path": str(path), "error": str(e)})
            return cls((), index=index)
        items: List[Any] = []
        if isinstance(raw, dict):
            items = raw.get("libraryItems") or raw.get("library") or []
        LOG.debug("Loaded icon library", extra={"path": str(path), "item_count": len(items)})
        return cls(items, index=index)

    def __len__(self) -> int:
        return len(self._items)

    def elements_for(self, resource_type: str) -> Optional[List[Element]]:
        idx = self._index.get(resource_type)
        if idx is None or idx >= len(self._items):
            return None
        item = self._items[idx]
        if isinstance(item, list):
            elements = item
        elif isinstance(item, dict):
            elements = item.get("elements") or []
        else:
            return None
        elements = [e for e in elements if isinstance(e, dict)]
        return elements or None


def _bounds(elements: Sequence[Element]) -> tuple[float, float, float, float]:
    min_x = min(float(e.get("x", 0)) for e in elements)
    min_y = min(float(e.get("y", 0)) for e in elements)
    max_x = max(float(e.get("x", 0)) + float(e.get("width") or 0) for e in elements)
    max_y = max(float(e.get("y", 0)) + float(e.get("height") or 0) for e in elements)
    return min_x, min_y, max_x, max_y


def clone_icon_elements(
    elements: Sequence[Element],
    target_x: float,
    target_y: float,
    target_size: float,
    ids: IdSource,
) -> List[Element]:
    """
    Copy an icon's elements into a `target_size` square at (target_x, target_y):
    uniform scale to fit, centred, fresh ids, and internal group ids remapped so
    two placed copies never share a group.
    """
    if not elements:
        return []
    min_x, min_y, max_x, max_y = _bounds(elements)
    orig_w = (max_x - min_x) or 1.0
    orig_h = (max_y - min_y) or 1.0
    scale = min(target_size / orig_w, target_size / orig_h)
    offset_x = target_x + (target_size - orig_w * scale) / 2
    offset_y = target_y + (target_size - orig_h * scale) / 2

    group_map: Dict[str, str] = {}
    for e in elements:
        for gid in e.get("groupIds") or []:
            if gid not in group_map:
                group_map[gid] = ids.token("icg")
    outer_group = ids.token("ico")
    updated = ids.now_ms()

    cloned: List[Element] = []
    for e in elements:
        c = copy.deepcopy(e)
        c.update(
            {
                "id": ids.token("ic"),
                "x": (float(e.get("x", 0)) - min_x) * scale + offset_x,
                "y": (float(e.get("y", 0)) - min_y) * scale + offset_y,
                "width": float(e.get("width") or 0) * scale,
                "height": float(e.get("height") or 0) * scale,
                "seed": ids.rand_int(),
                "versionNonce": ids.rand_int(),
                "groupIds": [outer_group] + [group_map[g] for g in e.get("groupIds") or []],
                "boundElements": None,
                "containerId": None,
                "updated": updated,
                "frameId": None,
                "link": None,
                "locked": False,
                "isDeleted": False,
            }
        )
        if e.get("points"):
            c["points"] = [[px * scale, py * scale] for px, py in e["points"]]
        cloned.append(c)
    return cloned
