from .baseline import K8sBaselineStack
from .monitoring import ObservabilityStack
