import json

from aws_cdk import assertions

from erigon_platform.infrastructure.compute.node_group_stack import PUBLIC_INGRESS, VPC_INGRESS


def _node_security_group_ingress(template):
    groups = template.find_resources("AWS::EC2::SecurityGroup", {
        "Properties": {"GroupDescription": "Node Group SG"}
    })
    assert len(groups) == 1
    return next(iter(groups.values()))["Properties"]["SecurityGroupIngress"]


def test_public_peering_ports_open_to_internet(templates):
    ingress = _node_security_group_ingress(templates["node_group"])
    public = {
        (rule["IpProtocol"], rule["FromPort"])
        for rule in ingress
        if rule.get("CidrIp") == "0.0.0.0/0"
    }

    assert public == {
        ("tcp", 30303), ("udp", 30303),
        ("tcp", 30304), ("udp", 30304),
        ("tcp", 42069), ("udp", 42069),
        ("udp", 4000), ("udp", 4001),
    }
    assert len(PUBLIC_INGRESS) == len(public)


def test_private_ports_open_to_vpc_only(templates):
    ingress = _node_security_group_ingress(templates["node_group"])
    from_vpc = sorted(
        rule["FromPort"] for rule in ingress
        if isinstance(rule.get("CidrIp"), dict)
    )

    assert from_vpc == sorted([
        9090, 6060, 8551, 8545, 9091, 7777, 9092, 9093, 9094, 9100, 10249, 10250
    ])
    assert len(VPC_INGRESS) == len(from_vpc)


def test_bastion_and_cluster_ingress(templates):
    ingress = _node_security_group_ingress(templates["node_group"])
    from_groups = {
        rule["Description"]: rule for rule in ingress
        if "SourceSecurityGroupId" in rule
    }

    assert from_groups["Bastion Host"]["IpProtocol"] == "tcp"
    assert from_groups["Bastion Host"]["FromPort"] == 443
    assert from_groups["EKS"]["IpProtocol"] == "-1"

    templates["node_group"].has_resource_properties("AWS::EC2::SecurityGroupIngress", {
        "IpProtocol": "udp",
        "FromPort": 20,
        "ToPort": 60,
        "Description": "Kubernetes DNS"
    })


def test_launch_template(templates):
    templates["node_group"].has_resource_properties("AWS::EC2::LaunchTemplate", {
        "LaunchTemplateData": {
            "InstanceType": "r7g.2xlarge",
            "SecurityGroupIds": assertions.Match.any_value(),
            "UserData": {"Fn::Base64": assertions.Match.any_value()}
        }
    })


def test_node_group_scaling_and_placement(templates):
    template = templates["node_group"]

    template.resource_count_is("AWS::EKS::Nodegroup", 1)
    template.has_resource_properties("AWS::EKS::Nodegroup", {
        "AmiType": "AL2_ARM_64",
        "ScalingConfig": {
            "MinSize": 1,
            "DesiredSize": 2,
            "MaxSize": 3
        },
        "LaunchTemplate": assertions.Match.object_like({
            "Id": assertions.Match.any_value()
        })
    })

    node_group = next(iter(template.find_resources("AWS::EKS::Nodegroup").values()))
    # availability_zones context restricts the group to two of the three node subnets
    assert len(node_group["Properties"]["Subnets"]) == 2
    assert "WorkerNodes" in json.dumps(node_group["Properties"]["Tags"])
