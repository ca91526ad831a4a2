import ipaddress

from aws_cdk import App, Environment, assertions

from erigon_platform.config import constants
from erigon_platform.config.environment_config import NetworkConfig
from erigon_platform.infrastructure.network.vpc_stack import VpcStack

from conftest import ACCOUNT, AZ_CONTEXT, REGION


def _subnets_by_group(template):
    groups = {}
    for subnet in template.find_resources("AWS::EC2::Subnet").values():
        props = subnet["Properties"]
        tags = {tag["Key"]: tag["Value"] for tag in props["Tags"]}
        groups.setdefault(tags["aws-cdk:subnet-name"], []).append(props)
    return groups


def test_vpc_stack(templates):
    template = templates["vpc"]

    template.resource_count_is("AWS::EC2::VPC", 1)
    template.has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": constants.DEFAULT_VPC_CIDR,
        "EnableDnsHostnames": True,
        "EnableDnsSupport": True
    })

    # Single NAT gateway for all private subnets
    template.resource_count_is("AWS::EC2::NatGateway", 1)


def test_subnet_tiers_span_supported_zones(templates):
    groups = _subnets_by_group(templates["vpc"])

    assert set(groups) == {
        constants.DMZ_SUBNET_GROUP,
        constants.CLUSTER_SUBNET_GROUP,
        constants.NODES_SUBNET_GROUP,
    }
    for subnets in groups.values():
        assert sorted(s["AvailabilityZone"] for s in subnets) == ["us-east-1a", "us-east-1b", "us-east-1c"]

    assert all(s["MapPublicIpOnLaunch"] for s in groups[constants.DMZ_SUBNET_GROUP])


def test_subnet_ranges_are_disjoint_and_inside_vpc(templates):
    parent = ipaddress.ip_network(constants.DEFAULT_VPC_CIDR)
    networks = [
        ipaddress.ip_network(subnet["Properties"]["CidrBlock"])
        for subnet in templates["vpc"].find_resources("AWS::EC2::Subnet").values()
    ]

    assert len(networks) == 9
    for network in networks:
        assert network.subnet_of(parent)
    for i, left in enumerate(networks):
        for right in networks[i + 1:]:
            assert not left.overlaps(right)

    prefixes = sorted(network.prefixlen for network in networks)
    assert prefixes == [20] * 6 + [21] * 3


def test_monitoring_endpoints_restricted_to_node_subnets(templates):
    template = templates["vpc"]
    node_cidrs = {
        subnet["CidrBlock"]
        for subnet in _subnets_by_group(template)[constants.NODES_SUBNET_GROUP]
    }

    template.has_resource_properties("AWS::EC2::VPCEndpoint", {
        "VpcEndpointType": "Gateway",
        "ServiceName": assertions.Match.any_value()
    })

    interface_endpoints = [
        endpoint["Properties"]
        for endpoint in template.find_resources("AWS::EC2::VPCEndpoint").values()
        if endpoint["Properties"].get("VpcEndpointType") == "Interface"
    ]
    assert sorted(e["ServiceName"] for e in interface_endpoints) == [
        f"com.amazonaws.{REGION}.aps",
        f"com.amazonaws.{REGION}.aps-workspaces",
        f"com.amazonaws.{REGION}.grafana",
        f"com.amazonaws.{REGION}.grafana-workspace",
    ]
    for endpoint in interface_endpoints:
        assert len(endpoint["SubnetIds"]) == 3

    endpoint_groups = template.find_resources("AWS::EC2::SecurityGroup", {
        "Properties": {"GroupDescription": "AMP Interface Endpoint SG"}
    })
    assert len(endpoint_groups) == 1
    ingress = next(iter(endpoint_groups.values()))["Properties"]["SecurityGroupIngress"]
    assert {rule["CidrIp"] for rule in ingress} == node_cidrs
    assert {(rule["FromPort"], rule["ToPort"], rule["IpProtocol"]) for rule in ingress} == {(443, 443, "tcp")}


def test_custom_cidr():
    app = App(context=AZ_CONTEXT)
    stack = VpcStack(
        app, "test-vpc",
        network_config=NetworkConfig(vpc_cidr="172.16.0.0/16"),
        env=Environment(account=ACCOUNT, region=REGION)
    )
    template = assertions.Template.from_stack(stack)

    template.has_resource_properties("AWS::EC2::VPC", {"CidrBlock": "172.16.0.0/16"})
    for subnet in template.find_resources("AWS::EC2::Subnet").values():
        assert ipaddress.ip_network(subnet["Properties"]["CidrBlock"]).subnet_of(
            ipaddress.ip_network("172.16.0.0/16")
        )
