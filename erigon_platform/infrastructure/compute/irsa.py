"""
IAM roles for service accounts (IRSA) trust helpers
"""
from aws_cdk import (
    CfnJson,
    aws_eks as eks,
    aws_iam as iam,
)
from constructs import Construct


def service_account_subject(namespace: str, name: str) -> str:
    """OIDC ``sub`` claim issued for a Kubernetes service account"""
    return f"system:serviceaccount:{namespace}:{name}"


def service_account_principal(
    scope: Construct,
    construct_id: str,
    cluster: eks.ICluster,
    namespace: str,
    name: str,
) -> iam.FederatedPrincipal:
    """
    Web identity principal trusted only for a single service account.

    The issuer URL is a token, so the condition keys are resolved through
    CfnJson at deploy time.
    """
    cluster_oidc_provider = cluster.open_id_connect_provider
    oidc_provider_url = cluster_oidc_provider.open_id_connect_provider_issuer

    string_equals = CfnJson(scope, construct_id, value={
        f"{oidc_provider_url}:sub": service_account_subject(namespace, name),
        f"{oidc_provider_url}:aud": "sts.amazonaws.com"
    })

    return iam.FederatedPrincipal(
        cluster_oidc_provider.open_id_connect_provider_arn,
        conditions={"StringEquals": string_equals},
        assume_role_action="sts:AssumeRoleWithWebIdentity"
    )
