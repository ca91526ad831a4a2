"""
Environment-specific configuration for the Erigon EKS Platform
"""
import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from constructs import Construct, Node

from erigon_platform.config import constants

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when a context value cannot be turned into platform configuration"""


@dataclass
class NetworkConfig:
    """Network configuration for the environment"""
    vpc_cidr: str = constants.DEFAULT_VPC_CIDR
    nat_gateways: int = 1
    eks_unsupported_azs: Tuple[str, ...] = constants.EKS_UNSUPPORTED_AZS


@dataclass
class AddonVersions:
    """Pinned versions of the EKS managed add-ons"""
    vpc_cni: str = constants.VPC_CNI_ADDON_VERSION
    kube_proxy: str = constants.KUBE_PROXY_ADDON_VERSION
    coredns: str = constants.COREDNS_ADDON_VERSION


@dataclass
class EksConfig:
    version: str = constants.EKS_VERSION
    addons: AddonVersions = field(default_factory=AddonVersions)
    bastion_instance_type: str = constants.BASTION_INSTANCE_TYPE
    bastion_key_pair_name: str = constants.BASTION_KEY_PAIR_NAME


@dataclass
class NodeGroupConfig:
    """Capacity configuration for the Erigon worker nodes"""
    instance_type: str = constants.NODE_GROUP_INSTANCE_TYPE
    min_size: int = constants.NODE_GROUP_MIN_SIZE
    desired_size: int = constants.NODE_GROUP_DESIRED_SIZE
    max_size: int = constants.NODE_GROUP_MAX_SIZE
    availability_zones: Optional[List[str]] = None


@dataclass
class BaselineConfig:
    """Helm chart versions for the in-cluster baseline"""
    alb_controller_chart_version: str = constants.ALB_CONTROLLER_CHART_VERSION
    ebs_csi_driver_chart_version: str = constants.EBS_CSI_DRIVER_CHART_VERSION


@dataclass
class MonitoringConfig:
    """Monitoring configuration for the environment"""
    retention_days: int = constants.AMP_LOG_RETENTION_DAYS
    prometheus_chart_version: str = constants.KUBE_PROMETHEUS_STACK_CHART_VERSION
    namespace: str = constants.MONITORING_NAMESPACE


@dataclass
class EnvironmentConfig:
    """Complete environment configuration"""
    account: Optional[str]
    region: Optional[str]
    stack_prefix: str = ""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    eks: EksConfig = field(default_factory=EksConfig)
    node_group: NodeGroupConfig = field(default_factory=NodeGroupConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def stack_name(self, construct_id: str) -> str:
        """CloudFormation stack name for the given construct id"""
        return f"{self.stack_prefix}{construct_id}"

    @classmethod
    def from_context(cls, node: Node, account: Optional[str], region: Optional[str]) -> 'EnvironmentConfig':
        """
        Build the configuration from CDK context values.

        Context comes from cdk.json or ``-c key=value`` on the command line, so
        numbers may arrive as strings. Missing keys fall back to the defaults
        in ``constants``.
        """
        def ctx(key: str, default: Any) -> Any:
            value = node.try_get_context(key)
            return default if value is None else value

        vpc_cidr = str(ctx("vpcCidr", constants.DEFAULT_VPC_CIDR))
        try:
            ipaddress.IPv4Network(vpc_cidr)
        except ValueError as e:
            raise ConfigurationError(f"vpcCidr {vpc_cidr!r} is not a valid IPv4 network: {e}") from e

        node_group = NodeGroupConfig(
            instance_type=str(ctx("nodeGroupInstanceType", constants.NODE_GROUP_INSTANCE_TYPE)),
            min_size=_as_int("nodeGroupMinSize", ctx("nodeGroupMinSize", constants.NODE_GROUP_MIN_SIZE)),
            desired_size=_as_int("nodeGroupDesiredSize", ctx("nodeGroupDesiredSize", constants.NODE_GROUP_DESIRED_SIZE)),
            max_size=_as_int("nodeGroupMaxSize", ctx("nodeGroupMaxSize", constants.NODE_GROUP_MAX_SIZE)),
            availability_zones=parse_availability_zones(node.try_get_context("availability_zones")),
        )
        _check_scaling_bounds(node_group)

        eks_version = str(ctx("eks-version", constants.EKS_VERSION))
        if eks_version not in constants.SUPPORTED_EKS_VERSIONS:
            raise ConfigurationError(
                f"eks-version {eks_version!r} is not supported, the kubectl layer and bastion kubectl "
                f"are built for {', '.join(constants.SUPPORTED_EKS_VERSIONS)}"
            )

        config = cls(
            account=account,
            region=region,
            stack_prefix=stack_prefix(node),
            network=NetworkConfig(vpc_cidr=vpc_cidr),
            eks=EksConfig(
                version=eks_version,
                addons=AddonVersions(
                    vpc_cni=ctx("eks-addon-vpc-cni-version", constants.VPC_CNI_ADDON_VERSION),
                    kube_proxy=ctx("eks-addon-kube-proxy-version", constants.KUBE_PROXY_ADDON_VERSION),
                    coredns=ctx("eks-addon-coredns-version", constants.COREDNS_ADDON_VERSION),
                ),
            ),
            node_group=node_group,
            baseline=BaselineConfig(
                alb_controller_chart_version=ctx(
                    "aws-load-balancer-controller-helm-version", constants.ALB_CONTROLLER_CHART_VERSION
                ),
                ebs_csi_driver_chart_version=ctx(
                    "aws-ebs-csi-driver-helm-version", constants.EBS_CSI_DRIVER_CHART_VERSION
                ),
            ),
            monitoring=MonitoringConfig(
                retention_days=_as_int("ampLogRetentionDays", ctx("ampLogRetentionDays", constants.AMP_LOG_RETENTION_DAYS)),
                prometheus_chart_version=ctx(
                    "kube-prometheus-stack-helm-version", constants.KUBE_PROMETHEUS_STACK_CHART_VERSION
                ),
            ),
        )
        logger.debug("Loaded configuration: %s", config)
        return config


def stack_prefix(scope: Construct) -> str:
    """Trimmed ``stack_prefix`` context value, or an empty string when unset"""
    node = scope if isinstance(scope, Node) else scope.node
    prefix_value = node.try_get_context("stack_prefix")
    if prefix_value is not None:
        return str(prefix_value).strip()
    # if no stack_prefix return empty string
    return ""


def parse_availability_zones(value: Any) -> Optional[List[str]]:
    """Accept ``"us-east-1a,us-east-1b"`` or a list; ``None`` means every zone"""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    zones = [str(zone).strip() for zone in value if str(zone).strip()]
    return zones or None


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e


def _check_scaling_bounds(node_group: NodeGroupConfig) -> None:
    if node_group.max_size < 1:
        raise ConfigurationError(f"nodeGroupMaxSize must be at least 1, got {node_group.max_size}")
    if not 0 <= node_group.min_size <= node_group.desired_size <= node_group.max_size:
        raise ConfigurationError(
            "node group scaling bounds must satisfy 0 <= min <= desired <= max, got "
            f"min={node_group.min_size} desired={node_group.desired_size} max={node_group.max_size}"
        )
