"""
IAM policies for the in-cluster baseline integrations

Each function creates an inline policy holding the permissions one controller
needs and attaches it to that controller's service account role.
"""
from aws_cdk import (
    Stack,
    aws_iam as iam,
    aws_kms as kms,
)
from constructs import Construct


def create_fluentbit_policy(scope: Construct, cluster_name: str, role: iam.IRole) -> iam.Policy:
    """Fluent Bit writes container, dataplane and host logs under /aws/containerinsights/<cluster>/"""
    stack = Stack.of(scope)
    log_group_arn = f"arn:aws:logs:{stack.region}:{stack.account}:log-group:/aws/containerinsights/{cluster_name}/*"
    policy = iam.Policy(
        scope, "FluentBitPolicy",
        statements=[
            iam.PolicyStatement(
                sid="ContainerInsightsLogs",
                effect=iam.Effect.ALLOW,
                actions=[
                    "logs:CreateLogGroup",
                    "logs:CreateLogStream",
                    "logs:DescribeLogStreams",
                    "logs:PutLogEvents",
                    "logs:PutRetentionPolicy"
                ],
                resources=[log_group_arn, f"{log_group_arn}:log-stream:*"]
            ),
            iam.PolicyStatement(
                sid="DescribeLogGroups",
                effect=iam.Effect.ALLOW,
                actions=["logs:DescribeLogGroups"],
                resources=["*"]
            ),
            iam.PolicyStatement(
                sid="NodeMetadata",
                effect=iam.Effect.ALLOW,
                actions=["ec2:DescribeTags", "ec2:DescribeVolumes"],
                resources=["*"]
            )
        ]
    )
    role.attach_inline_policy(policy)
    return policy


def create_alb_ingress_policy(scope: Construct, cluster_name: str, role: iam.IRole) -> iam.Policy:
    """
    Permissions of the AWS Load Balancer Controller.

    Mirrors the controller's published iam_policy.json. Mutating calls are
    limited to resources tagged by this cluster's controller.
    """
    cluster_tag = "elbv2.k8s.aws/cluster"
    tagged_by_cluster = {
        "Null": {
            f"aws:RequestTag/{cluster_tag}": "true",
            f"aws:ResourceTag/{cluster_tag}": "false"
        }
    }
    policy = iam.Policy(
        scope, "AlbIngressControllerPolicy",
        statements=[
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["iam:CreateServiceLinkedRole"],
                resources=["*"],
                conditions={
                    "StringEquals": {"iam:AWSServiceName": "elasticloadbalancing.amazonaws.com"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ec2:DescribeAccountAttributes",
                    "ec2:DescribeAddresses",
                    "ec2:DescribeAvailabilityZones",
                    "ec2:DescribeInternetGateways",
                    "ec2:DescribeVpcs",
                    "ec2:DescribeVpcPeeringConnections",
                    "ec2:DescribeSubnets",
                    "ec2:DescribeSecurityGroups",
                    "ec2:DescribeInstances",
                    "ec2:DescribeNetworkInterfaces",
                    "ec2:DescribeTags",
                    "ec2:GetCoipPoolUsage",
                    "ec2:DescribeCoipPools",
                    "ec2:GetSecurityGroupsForVpc",
                    "elasticloadbalancing:DescribeLoadBalancers",
                    "elasticloadbalancing:DescribeLoadBalancerAttributes",
                    "elasticloadbalancing:DescribeListeners",
                    "elasticloadbalancing:DescribeListenerCertificates",
                    "elasticloadbalancing:DescribeListenerAttributes",
                    "elasticloadbalancing:DescribeSSLPolicies",
                    "elasticloadbalancing:DescribeRules",
                    "elasticloadbalancing:DescribeTargetGroups",
                    "elasticloadbalancing:DescribeTargetGroupAttributes",
                    "elasticloadbalancing:DescribeTargetHealth",
                    "elasticloadbalancing:DescribeTags",
                    "elasticloadbalancing:DescribeTrustStores"
                ],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "cognito-idp:DescribeUserPoolClient",
                    "acm:ListCertificates",
                    "acm:DescribeCertificate",
                    "iam:ListServerCertificates",
                    "iam:GetServerCertificate",
                    "waf-regional:GetWebACL",
                    "waf-regional:GetWebACLForResource",
                    "waf-regional:AssociateWebACL",
                    "waf-regional:DisassociateWebACL",
                    "wafv2:GetWebACL",
                    "wafv2:GetWebACLForResource",
                    "wafv2:AssociateWebACL",
                    "wafv2:DisassociateWebACL",
                    "shield:GetSubscriptionState",
                    "shield:DescribeProtection",
                    "shield:CreateProtection",
                    "shield:DeleteProtection"
                ],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ec2:AuthorizeSecurityGroupIngress",
                    "ec2:RevokeSecurityGroupIngress"
                ],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateSecurityGroup"],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateTags"],
                resources=["arn:aws:ec2:*:*:security-group/*"],
                conditions={
                    "StringEquals": {"ec2:CreateAction": "CreateSecurityGroup"},
                    "Null": {f"aws:RequestTag/{cluster_tag}": "false"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateTags", "ec2:DeleteTags"],
                resources=["arn:aws:ec2:*:*:security-group/*"],
                conditions=tagged_by_cluster
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ec2:AuthorizeSecurityGroupIngress",
                    "ec2:RevokeSecurityGroupIngress",
                    "ec2:DeleteSecurityGroup"
                ],
                resources=["*"],
                conditions={
                    "Null": {f"aws:ResourceTag/{cluster_tag}": "false"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:CreateLoadBalancer",
                    "elasticloadbalancing:CreateTargetGroup"
                ],
                resources=["*"],
                conditions={
                    "Null": {f"aws:RequestTag/{cluster_tag}": "false"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:CreateListener",
                    "elasticloadbalancing:DeleteListener",
                    "elasticloadbalancing:CreateRule",
                    "elasticloadbalancing:DeleteRule"
                ],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:AddTags",
                    "elasticloadbalancing:RemoveTags"
                ],
                resources=[
                    "arn:aws:elasticloadbalancing:*:*:targetgroup/*/*",
                    "arn:aws:elasticloadbalancing:*:*:loadbalancer/net/*/*",
                    "arn:aws:elasticloadbalancing:*:*:loadbalancer/app/*/*"
                ],
                conditions=tagged_by_cluster
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:AddTags",
                    "elasticloadbalancing:RemoveTags"
                ],
                resources=[
                    "arn:aws:elasticloadbalancing:*:*:listener/net/*/*/*",
                    "arn:aws:elasticloadbalancing:*:*:listener/app/*/*/*",
                    "arn:aws:elasticloadbalancing:*:*:listener-rule/net/*/*/*",
                    "arn:aws:elasticloadbalancing:*:*:listener-rule/app/*/*/*"
                ]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:ModifyLoadBalancerAttributes",
                    "elasticloadbalancing:SetIpAddressType",
                    "elasticloadbalancing:SetSecurityGroups",
                    "elasticloadbalancing:SetSubnets",
                    "elasticloadbalancing:DeleteLoadBalancer",
                    "elasticloadbalancing:ModifyTargetGroup",
                    "elasticloadbalancing:ModifyTargetGroupAttributes",
                    "elasticloadbalancing:DeleteTargetGroup",
                    "elasticloadbalancing:ModifyListenerAttributes"
                ],
                resources=["*"],
                conditions={
                    "Null": {f"aws:ResourceTag/{cluster_tag}": "false"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["elasticloadbalancing:AddTags"],
                resources=[
                    "arn:aws:elasticloadbalancing:*:*:targetgroup/*/*",
                    "arn:aws:elasticloadbalancing:*:*:loadbalancer/net/*/*",
                    "arn:aws:elasticloadbalancing:*:*:loadbalancer/app/*/*"
                ],
                conditions={
                    "StringEquals": {
                        "elasticloadbalancing:CreateAction": [
                            "CreateTargetGroup",
                            "CreateLoadBalancer"
                        ]
                    },
                    "Null": {f"aws:RequestTag/{cluster_tag}": "false"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:RegisterTargets",
                    "elasticloadbalancing:DeregisterTargets"
                ],
                resources=["arn:aws:elasticloadbalancing:*:*:targetgroup/*/*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticloadbalancing:SetWebAcl",
                    "elasticloadbalancing:ModifyListener",
                    "elasticloadbalancing:AddListenerCertificates",
                    "elasticloadbalancing:RemoveListenerCertificates",
                    "elasticloadbalancing:ModifyRule"
                ],
                resources=["*"]
            )
        ]
    )
    role.attach_inline_policy(policy)
    return policy


def create_ebs_policy(scope: Construct, cluster_name: str, role: iam.IRole) -> iam.Policy:
    """
    Permissions of the EBS CSI driver controller.

    Mirrors AmazonEBSCSIDriverPolicy. Volumes and snapshots must carry the
    ``eks:cluster-name`` tag the chart sets through ``extraVolumeTags``
    before the driver may delete them.
    """
    cluster_tag_condition = {
        "StringEquals": {"aws:ResourceTag/eks:cluster-name": cluster_name}
    }
    policy = iam.Policy(
        scope, "EbsCsiDriverPolicy",
        statements=[
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ec2:CreateSnapshot",
                    "ec2:AttachVolume",
                    "ec2:DetachVolume",
                    "ec2:ModifyVolume",
                    "ec2:DescribeAvailabilityZones",
                    "ec2:DescribeInstances",
                    "ec2:DescribeSnapshots",
                    "ec2:DescribeTags",
                    "ec2:DescribeVolumes",
                    "ec2:DescribeVolumesModifications"
                ],
                resources=["*"]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateTags"],
                resources=[
                    "arn:aws:ec2:*:*:volume/*",
                    "arn:aws:ec2:*:*:snapshot/*"
                ],
                conditions={
                    "StringEquals": {
                        "ec2:CreateAction": ["CreateVolume", "CreateSnapshot"]
                    }
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:DeleteTags"],
                resources=[
                    "arn:aws:ec2:*:*:volume/*",
                    "arn:aws:ec2:*:*:snapshot/*"
                ]
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateVolume"],
                resources=["*"],
                conditions={
                    "StringLike": {"aws:RequestTag/ebs.csi.aws.com/cluster": "true"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:CreateVolume"],
                resources=["*"],
                conditions={
                    "StringLike": {"aws:RequestTag/CSIVolumeName": "*"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:DeleteVolume"],
                resources=["*"],
                conditions=cluster_tag_condition
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:DeleteVolume"],
                resources=["*"],
                conditions={
                    "StringLike": {"ec2:ResourceTag/ebs.csi.aws.com/cluster": "true"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:DeleteSnapshot"],
                resources=["*"],
                conditions={
                    "StringLike": {"ec2:ResourceTag/CSIVolumeSnapshotName": "*"}
                }
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ec2:DeleteSnapshot"],
                resources=["*"],
                conditions={
                    "StringLike": {"ec2:ResourceTag/ebs.csi.aws.com/cluster": "true"}
                }
            )
        ]
    )
    role.attach_inline_policy(policy)
    return policy


def create_ebs_encryption_policy(scope: Construct, key: kms.IKey, role: iam.IRole) -> iam.Policy:
    """Let the EBS CSI driver create volumes encrypted with the cluster key"""
    policy = iam.Policy(
        scope, "EncryptEBS",
        statements=[
            iam.PolicyStatement(
                actions=["kms:CreateGrant", "kms:ListGrants", "kms:RevokeGrant"],
                effect=iam.Effect.ALLOW,
                resources=[key.key_arn],
                conditions={
                    "Bool": {"kms:GrantIsForAWSResource": "true"}
                }
            ),
            iam.PolicyStatement(
                actions=[
                    "kms:Encrypt",
                    "kms:Decrypt",
                    "kms:ReEncrypt*",
                    "kms:GenerateDataKey*",
                    "kms:DescribeKey"
                ],
                effect=iam.Effect.ALLOW,
                resources=[key.key_arn]
            )
        ]
    )
    role.attach_inline_policy(policy)
    return policy
