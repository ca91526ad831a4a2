from cdk_nag import NagSuppressions

from erigon_platform.app_builder import PlatformStacks

VPC_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-VPC7",
        "reason": "No VPC Flow Log required for PoC-grade deployment"
    }
]

EKS_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-IAM4",
        "reason": "AWSLambdaBasicExecutionRole, AWSLambdaVPCAccessExecutionRole, AmazonEKS* are restrictive roles"
    },
    {
        "id": "AwsSolutions-IAM5",
        "reason": "Permission to read CF stack is restrictive enough"
    },
    {
        "id": "AwsSolutions-L1",
        "reason": "Non-container Lambda function managed by predefined EKS templates for CDK"
    },
    {
        "id": "AwsSolutions-EC23",
        "reason": "Bastion host must be publicly accessible"
    },
    {
        "id": "AwsSolutions-EC28",
        "reason": "Detailed monitoring not required for PoC-grade deployment"
    },
    {
        "id": "AwsSolutions-EC29",
        "reason": "Termination is disabled via property override, which cdk-nag does not account for"
    },
    {
        "id": "AwsSolutions-SF1",
        "reason": "Step Functions logging is managed by the CDK EKS cluster provider"
    },
    {
        "id": "AwsSolutions-SF2",
        "reason": "X-Ray tracing is not required for CDK-generated Step Functions"
    }
]

NODE_GROUP_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-EC23",
        "reason": "Erigon peering ports must be reachable from the internet, nodes run within private VPC"
    }
]

BASELINE_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-IAM5",
        "reason": "Controller policies follow the upstream published policies and are scoped by tag conditions"
    }
]

OBSERVABILITY_SUPPRESSIONS = [
    {
        "id": "AwsSolutions-IAM5",
        "reason": "Permission to read CF stack is restrictive enough"
    }
]


def add_nag_suppressions(stacks: PlatformStacks):
    """
    Add suppressions for cdk-nag findings
    """
    NagSuppressions.add_stack_suppressions(stacks.vpc, VPC_SUPPRESSIONS)
    NagSuppressions.add_stack_suppressions(stacks.node_group, NODE_GROUP_SUPPRESSIONS)

    # Suppress in nested stacks too, the kubectl and cluster providers live there
    NagSuppressions.add_stack_suppressions(stacks.eks, EKS_SUPPRESSIONS, apply_to_nested_stacks=True)
    NagSuppressions.add_stack_suppressions(stacks.baseline, BASELINE_SUPPRESSIONS, apply_to_nested_stacks=True)
    NagSuppressions.add_stack_suppressions(
        stacks.observability, OBSERVABILITY_SUPPRESSIONS, apply_to_nested_stacks=True
    )
