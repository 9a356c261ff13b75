from __future__ import annotations

from typing import List, Sequence, Tuple

from ..normalize.schema import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE, Node
from .base import Enricher, Enrichment

# (path substrings, summary, issues, recommendations); first match wins.
# Issues listed under `create` are only raised for Nodes being created.
_KEYWORD_TABLE: Sequence[Tuple[Tuple[str, ...], str, Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]]] = (
    (
        ("aws_lambda_function",),
        "Lambda function configuration",
        (),
        ("New Lambda function - verify memory and timeout settings",),
        ("Consider setting reserved concurrency", "Ensure dead letter queue is configured"),
    ),
    (
        ("aws_s3_bucket",),
        "S3 bucket configuration",
        ("Verify bucket policy and public access settings",),
        (),
        ("Enable versioning for data protection", "Consider lifecycle rules for cost optimization"),
    ),
    (
        ("aws_iam",),
        "IAM configuration",
        ("Review IAM policy for least-privilege compliance",),
        (),
        ("Audit policy permissions regularly",),
    ),
    (
        ("aws_dynamodb",),
        "DynamoDB table configuration",
        (),
        (),
        ("Consider on-demand capacity for unpredictable workloads", "Enable point-in-time recovery"),
    ),
    (
        ("aws_api_gateway", "aws_apigatewayv2"),
        "API Gateway configuration",
        (),
        (),
        ("Enable request validation", "Configure throttling limits"),
    ),
    (
        ("aws_security_group", "aws_vpc"),
        "Networking configuration",
        ("Review security group rules for overly permissive access",),
        (),
        ("Restrict ingress to known CIDR ranges",),
    ),
)

DELETE_ISSUE = "Resource is being destroyed - verify this is intentional"
UPDATE_ISSUE = "In-place update - verify no breaking changes"


class KeywordEnricher(Enricher):
    """
    Static lookup from resource-type substrings to canned advisory text.
    Never raises; Nodes matching no keyword get a generic summary.
    """

    def enrich(self, node_path: str, node: Node) -> Enrichment:  # type: ignore[override]
        actions = node.actions()
        issues: List[str] = []
        recommendations: List[str] = []

        for keywords, summary, base_issues, create_issues, recs in _KEYWORD_TABLE:
            if any(k in node_path for k in keywords):
                issues.extend(base_issues)
                if ACTION_CREATE in actions:
                    issues.extend(create_issues)
                # the Lambda advice only applies to new functions
                if create_issues and ACTION_CREATE not in actions:
                    recs = ()
                recommendations.extend(recs)
                break
        else:
            summary = f"Resource: {node_path.split('.')[0]}"
            if ACTION_DELETE in actions:
                issues.append(DELETE_ISSUE)

        if ACTION_UPDATE in actions:
            issues.append(UPDATE_ISSUE)

        return Enrichment(summary=summary, issues=issues, recommendations=recommendations)
