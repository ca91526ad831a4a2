import logging

from aws_cdk import (
    Stack,
    Fn,
    aws_ec2 as ec2,
    aws_eks as eks,
    aws_iam as iam,
    CfnOutput,
)
from constructs import Construct
from erigon_platform.config import NodeGroupConfig, constants

logger = logging.getLogger(__name__)

# Erigon ports: https://github.com/ledgerwatch/erigon#default-ports-and-protocols--firewalls
# Open to the internet, peers must be able to reach the nodes.
PUBLIC_INGRESS = [
    (ec2.Port.tcp(30303), "eth/66 peering"),
    (ec2.Port.udp(30303), "eth/66 peering"),
    (ec2.Port.tcp(30304), "eth/67 peering"),
    (ec2.Port.udp(30304), "eth/67 peering"),
    (ec2.Port.tcp(42069), "Snap sync (Bittorrent)"),
    (ec2.Port.udp(42069), "Snap sync (Bittorrent)"),
    (ec2.Port.udp(4000), "Peering"),
    (ec2.Port.udp(4001), "Peering"),
]

# Open to the VPC CIDR only
VPC_INGRESS = [
    (ec2.Port.tcp(9090), "gRPC Connections"),
    (ec2.Port.tcp(6060), "Metrics or Pprof"),
    (ec2.Port.tcp(8551), "Engine API (JWT auth)"),
    (ec2.Port.tcp(8545), "RPC"),
    (ec2.Port.tcp(9091), "gRPC Connections"),
    (ec2.Port.tcp(7777), "gRPC Connections"),
    (ec2.Port.tcp(9092), "gRPC (reserved)"),
    (ec2.Port.tcp(9093), "gRPC (reserved)"),
    (ec2.Port.tcp(9094), "gRPC (reserved)"),
    (ec2.Port.tcp(9100), "prometheus node-exporter metrics"),
    (ec2.Port.tcp(10249), "prometheus kube-proxy metrics"),
    (ec2.Port.tcp(10250), "prometheus kubelet metrics"),
]


class NodeGroupStack(Stack):
    """
    Creates the managed node group running Erigon, with its launch template and security group
    """
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        vpc: ec2.IVpc,
        cluster: eks.Cluster,
        node_group_role: iam.Role,
        bastion_security_group: ec2.ISecurityGroup,
        node_group_config: NodeGroupConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.security_group = self._create_security_group(vpc, cluster, bastion_security_group)

        user_data = ec2.UserData.for_linux()
        user_data.add_commands("#!/bin/bash", "yum update -y")

        multipart_user_data = ec2.MultipartUserData()
        multipart_user_data.add_part(ec2.MultipartBody.from_user_data(user_data))

        self.launch_template = ec2.CfnLaunchTemplate(
            self, "LaunchTemplate",
            launch_template_data=ec2.CfnLaunchTemplate.LaunchTemplateDataProperty(
                instance_type=node_group_config.instance_type,
                security_group_ids=[self.security_group.security_group_id],
                user_data=Fn.base64(multipart_user_data.render())
            )
        )

        logger.debug(
            "Node group scaling min=%s desired=%s max=%s zones=%s",
            node_group_config.min_size,
            node_group_config.desired_size,
            node_group_config.max_size,
            node_group_config.availability_zones,
        )
        self.node_group = eks.Nodegroup(
            self, "NodeGroup",
            ami_type=eks.NodegroupAmiType.AL2_ARM_64,
            cluster=cluster,
            node_role=node_group_role,
            min_size=node_group_config.min_size,
            desired_size=node_group_config.desired_size,
            max_size=node_group_config.max_size,
            subnets=ec2.SubnetSelection(
                availability_zones=node_group_config.availability_zones,
                subnet_group_name=constants.NODES_SUBNET_GROUP
            ),
            launch_template_spec=eks.LaunchTemplateSpec(
                id=self.launch_template.ref,
                version=self.launch_template.attr_latest_version_number
            ),
            tags={
                "Name": Fn.join("-", [cluster.cluster_name, "WorkerNodes"])
            }
        )

        # Permissions for SSM Manager for core functionality
        node_group_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore")
        )

        CfnOutput(self, "NodeGroupName",
            value=self.node_group.nodegroup_name,
            description="Name of the Erigon managed node group"
        )

    def _create_security_group(
        self,
        vpc: ec2.IVpc,
        cluster: eks.Cluster,
        bastion_security_group: ec2.ISecurityGroup,
    ) -> ec2.SecurityGroup:
        """Create the node security group with Erigon peering and private service ports"""
        security_group = ec2.SecurityGroup(
            self, "NodeGroupSG",
            vpc=vpc,
            allow_all_outbound=True,
            description="Node Group SG"
        )

        for port, description in PUBLIC_INGRESS:
            security_group.add_ingress_rule(ec2.Peer.any_ipv4(), port, description)

        security_group.add_ingress_rule(
            ec2.Peer.security_group_id(bastion_security_group.security_group_id),
            ec2.Port.tcp(443),
            "Bastion Host"
        )
        security_group.add_ingress_rule(
            ec2.Peer.security_group_id(cluster.cluster_security_group_id),
            ec2.Port.all_traffic(),
            "EKS"
        )
        security_group.add_ingress_rule(
            security_group,
            ec2.Port.udp_range(20, 60),
            "Kubernetes DNS"
        )

        for port, description in VPC_INGRESS:
            security_group.add_ingress_rule(ec2.Peer.ipv4(vpc.vpc_cidr_block), port, description)

        return security_group
