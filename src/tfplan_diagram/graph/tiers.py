from __future__ import annotations

from typing import FrozenSet, Mapping

from ..normalize.schema import Node, NodeModel, clone_model

DATA_SENTINEL = "data"

TIER_1_TYPES: FrozenSet[str] = frozenset(
    {
        "aws_lambda_function",
        "aws_s3_bucket",
        "aws_sqs_queue",
        "aws_sns_topic",
        "aws_dynamodb_table",
        "aws_api_gateway_rest_api",
        "aws_apigatewayv2_api",
        "aws_ec2_instance",
        "aws_rds_instance",
        "aws_rds_cluster",
        "aws_ecs_service",
        "aws_ecs_cluster",
        "aws_ecs_task_definition",
        "aws_kinesis_stream",
        "aws_kinesis_firehose_delivery_stream",
        "aws_elasticache_cluster",
        "aws_vpc",
        "aws_subnet",
        "aws_security_group",
        "aws_lb",
        "aws_alb",
        "aws_cloudfront_distribution",
        "aws_route53_zone",
        "aws_sfn_state_machine",
        "aws_step_functions_state_machine",
        "aws_secretsmanager_secret",
        "aws_ssm_parameter",
        "aws_cognito_user_pool",
        "aws_eks_cluster",
        "aws_elasticsearch_domain",
        "aws_opensearch_domain",
        "aws_redshift_cluster",
        "aws_msk_cluster",
        "aws_batch_job_definition",
        "aws_batch_compute_environment",
    }
)

TIER_3_TYPES: FrozenSet[str] = frozenset(
    {
        "null_resource",
        "local_file",
        "random_id",
        "random_string",
        "random_password",
        "archive_file",
        "template_file",
        "terraform_remote_state",
    }
)


def resource_type(node_path: str) -> str:
    """
    Type token of a canonical path, after any `module.<name>` pairs.
    Data sources return the `data` sentinel.
    """
    parts = node_path.split(".")
    i = 0
    while i < len(parts) - 1 and parts[i] == "module":
        i += 2
    if i < len(parts) and parts[i] == DATA_SENTINEL:
        return DATA_SENTINEL
    if i < len(parts) and parts[i]:
        return parts[i]
    return node_path


def tier_for(node_path: str) -> int:
    rtype = resource_type(node_path)
    if rtype == DATA_SENTINEL or rtype in TIER_3_TYPES:
        return 3
    if rtype in TIER_1_TYPES:
        return 1
    return 2


def assign_tiers(model: Mapping[str, Node]) -> NodeModel:
    nodes = clone_model(model)
    for path, node in nodes.items():
        node.tier = tier_for(path)
    return nodes
