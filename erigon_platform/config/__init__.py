from . import constants
from .environment_config import (
    AddonVersions,
    BaselineConfig,
    ConfigurationError,
    EksConfig,
    EnvironmentConfig,
    MonitoringConfig,
    NetworkConfig,
    NodeGroupConfig,
    parse_availability_zones,
    stack_prefix,
)
