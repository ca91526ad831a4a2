"""
Wires the platform stacks together in deployment order
"""
import logging
from dataclasses import dataclass

from aws_cdk import Environment
from constructs import Construct

from erigon_platform.config import EnvironmentConfig
from erigon_platform.infrastructure.compute import EksClusterStack, NodeGroupStack
from erigon_platform.infrastructure.network import VpcStack
from erigon_platform.platform.baseline import K8sBaselineStack
from erigon_platform.platform.monitoring import ObservabilityStack

logger = logging.getLogger(__name__)

NODE_GROUP_ROLE_ID = "erigon-ng"


@dataclass
class PlatformStacks:
    vpc: VpcStack
    eks: EksClusterStack
    node_group: NodeGroupStack
    baseline: K8sBaselineStack
    observability: ObservabilityStack

    def all(self):
        return [self.vpc, self.eks, self.node_group, self.baseline, self.observability]


def create_platform(scope: Construct, config: EnvironmentConfig, env: Environment) -> PlatformStacks:
    """
    Create the five platform stacks.

    Every stack except VPC is named ``<stack_prefix><construct id>``.
    Outputs of earlier stacks (VPC, cluster, KMS key, bastion security group,
    node role) are passed to later ones, and the node group, baseline and
    observability stacks are ordered explicitly after the cluster.
    """
    vpc_stack = VpcStack(
        scope,
        "VPC",
        network_config=config.network,
        # The VPC stack name is never prefixed
        env=env
    )

    eks_stack = EksClusterStack(
        scope,
        "EKS",
        vpc=vpc_stack.vpc,
        eks_config=config.eks,
        stack_name=config.stack_name("EKS"),
        env=env
    )

    node_group_stack = NodeGroupStack(
        scope,
        "NodeGroup",
        vpc=vpc_stack.vpc,
        cluster=eks_stack.cluster,
        node_group_role=eks_stack.create_nodegroup_role(NODE_GROUP_ROLE_ID),
        bastion_security_group=eks_stack.bastion_security_group,
        node_group_config=config.node_group,
        stack_name=config.stack_name("NodeGroup"),
        env=env
    )

    baseline_stack = K8sBaselineStack(
        scope,
        "EKSK8sBaseline",
        cluster=eks_stack.cluster,
        key=eks_stack.kms,
        baseline_config=config.baseline,
        stack_name=config.stack_name("EKSK8sBaseline"),
        env=env
    )

    observability_stack = ObservabilityStack(
        scope,
        "Observe",
        cluster=eks_stack.cluster,
        key=eks_stack.kms,
        vpc=vpc_stack.vpc,
        monitoring_config=config.monitoring,
        stack_name=config.stack_name("Observe"),
        env=env
    )

    # Add dependencies
    node_group_stack.add_dependency(eks_stack)
    baseline_stack.add_dependency(node_group_stack)
    observability_stack.add_dependency(node_group_stack)

    stacks = PlatformStacks(
        vpc=vpc_stack,
        eks=eks_stack,
        node_group=node_group_stack,
        baseline=baseline_stack,
        observability=observability_stack,
    )
    logger.info("Created stacks: %s", ", ".join(stack.stack_name for stack in stacks.all()))
    return stacks
