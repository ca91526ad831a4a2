import pytest
from aws_cdk import App

from erigon_platform.config import (
    ConfigurationError,
    EnvironmentConfig,
    constants,
    parse_availability_zones,
    stack_prefix,
)


def _config(context=None):
    app = App(context=context or {})
    return EnvironmentConfig.from_context(app.node, "123456789012", "us-east-1")


def test_defaults():
    config = _config()

    assert config.stack_prefix == ""
    assert config.network.vpc_cidr == "10.0.0.0/16"
    assert config.eks.version == constants.EKS_VERSION
    assert config.eks.addons.vpc_cni == constants.VPC_CNI_ADDON_VERSION
    assert config.node_group.instance_type == "r7g.2xlarge"
    assert (config.node_group.min_size, config.node_group.desired_size, config.node_group.max_size) == (1, 1, 1)
    assert config.node_group.availability_zones is None
    assert config.monitoring.retention_days == 7
    assert config.baseline.alb_controller_chart_version == constants.ALB_CONTROLLER_CHART_VERSION


def test_context_overrides():
    config = _config({
        "vpcCidr": "10.20.0.0/16",
        "eks-addon-coredns-version": "v1.11.3-eksbuild.1",
        "nodeGroupInstanceType": "r7g.4xlarge",
        "nodeGroupMinSize": "2",
        "nodeGroupDesiredSize": "3",
        "nodeGroupMaxSize": "5",
        "kube-prometheus-stack-helm-version": "70.0.0",
    })

    assert config.network.vpc_cidr == "10.20.0.0/16"
    assert config.eks.addons.coredns == "v1.11.3-eksbuild.1"
    assert config.node_group.instance_type == "r7g.4xlarge"
    assert (config.node_group.min_size, config.node_group.desired_size, config.node_group.max_size) == (2, 3, 5)
    assert config.monitoring.prometheus_chart_version == "70.0.0"


@pytest.mark.parametrize("value,expected", [
    ("  dev-  ", "dev-"),
    ("prod-", "prod-"),
    ("", ""),
])
def test_stack_prefix_trimmed(value, expected):
    app = App(context={"stack_prefix": value})

    assert stack_prefix(app) == expected
    assert stack_prefix(app.node) == expected


def test_stack_prefix_absent():
    assert stack_prefix(App()) == ""


def test_stack_name():
    config = _config({"stack_prefix": "test-"})

    assert config.stack_name("EKS") == "test-EKS"


@pytest.mark.parametrize("value,expected", [
    (None, None),
    ("us-east-1a,us-east-1b", ["us-east-1a", "us-east-1b"]),
    (" us-east-1a , us-east-1c ", ["us-east-1a", "us-east-1c"]),
    (["us-east-1b"], ["us-east-1b"]),
    ("", None),
])
def test_parse_availability_zones(value, expected):
    assert parse_availability_zones(value) == expected


@pytest.mark.parametrize("context", [
    {"vpcCidr": "10.0.0.0/33"},
    {"vpcCidr": "not-a-cidr"},
    {"nodeGroupMinSize": 3, "nodeGroupDesiredSize": 2, "nodeGroupMaxSize": 4},
    {"nodeGroupDesiredSize": 5, "nodeGroupMaxSize": 4},
    {"nodeGroupMinSize": 0, "nodeGroupDesiredSize": 0, "nodeGroupMaxSize": 0},
    {"nodeGroupMaxSize": "many"},
    {"ampLogRetentionDays": "a week"},
    {"nodeGroupMaxSize": 2.7},
    {"nodeGroupMaxSize": 2.7, "nodeGroupDesiredSize": 1.9},
    {"ampLogRetentionDays": 7.5},
    {"eks-version": "1.31"},
])
def test_invalid_context_rejected(context):
    with pytest.raises(ConfigurationError):
        _config(context)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        _config({"nodeGroupMinSize": -1})


def test_integral_floats_accepted():
    config = _config({"nodeGroupDesiredSize": 2.0, "nodeGroupMaxSize": 3.0})

    assert (config.node_group.desired_size, config.node_group.max_size) == (2, 3)
    assert isinstance(config.node_group.max_size, int)
