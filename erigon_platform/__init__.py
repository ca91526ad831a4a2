from .infrastructure import VpcStack, EksClusterStack, NodeGroupStack
from .platform import K8sBaselineStack, ObservabilityStack
from .config import (
    EnvironmentConfig,
    NetworkConfig,
    EksConfig,
    NodeGroupConfig,
    BaselineConfig,
    MonitoringConfig,
    ConfigurationError,
)
from .app_builder import PlatformStacks, create_platform
