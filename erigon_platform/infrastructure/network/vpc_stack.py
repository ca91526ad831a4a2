import logging

from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    CfnOutput,
)
from constructs import Construct
from erigon_platform.config import NetworkConfig, constants

logger = logging.getLogger(__name__)

# Interface endpoints reachable from the worker nodes only
MONITORING_ENDPOINT_SERVICES = {
    "PrometheusEndpoint": "aps",
    "PrometheusWorkspacesEndpoint": "aps-workspaces",
    "GrafanaEndpoint": "grafana",
    "GrafanaWorkspacesEndpoint": "grafana-workspace",
}


class VpcStack(Stack):
    """
    Creates the three-tier VPC for the Erigon EKS cluster
    """
    def __init__(self, scope: Construct, construct_id: str, network_config: NetworkConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        availability_zones = [
            az for az in self.availability_zones
            if az not in network_config.eks_unsupported_azs
        ]
        logger.debug("VPC availability zones: %s", availability_zones)

        self.vpc = ec2.Vpc(self, "erigon",
            ip_addresses=ec2.IpAddresses.cidr(network_config.vpc_cidr),
            nat_gateways=network_config.nat_gateways,
            enable_dns_support=True,
            enable_dns_hostnames=True,
            availability_zones=availability_zones,
            gateway_endpoints={
                "S3": ec2.GatewayVpcEndpointOptions(
                    service=ec2.GatewayVpcEndpointAwsService.S3
                )
            },
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    cidr_mask=20,
                    name=constants.DMZ_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PUBLIC
                ),
                ec2.SubnetConfiguration(
                    cidr_mask=21,
                    name=constants.CLUSTER_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                ),
                ec2.SubnetConfiguration(
                    cidr_mask=20,
                    name=constants.NODES_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                ),
            ]
        )

        # Add VPC Endpoints for AMP and Grafana access from the nodes
        self._add_vpc_endpoints()

        CfnOutput(self, "VpcId",
            value=self.vpc.vpc_id,
            description="ID of the Erigon EKS VPC"
        )

    def _add_vpc_endpoints(self):
        """Add interface endpoints for AMP and Grafana restricted to the node subnets"""
        self.endpoint_security_group = ec2.SecurityGroup(
            self, "AMPInterfaceEndpointSG",
            vpc=self.vpc,
            allow_all_outbound=True,
            description="AMP Interface Endpoint SG"
        )

        for subnet in self.vpc.select_subnets(subnet_group_name=constants.NODES_SUBNET_GROUP).subnets:
            self.endpoint_security_group.add_ingress_rule(
                ec2.Peer.ipv4(subnet.ipv4_cidr_block),
                ec2.Port.tcp(443),
                "EKS Nodes"
            )

        for endpoint_id, service_name in MONITORING_ENDPOINT_SERVICES.items():
            self.vpc.add_interface_endpoint(
                endpoint_id,
                service=ec2.InterfaceVpcEndpointService(
                    f"com.amazonaws.{self.region}.{service_name}"
                ),
                security_groups=[self.endpoint_security_group],
                open=False,
                subnets=ec2.SubnetSelection(subnet_group_name=constants.NODES_SUBNET_GROUP)
            )
