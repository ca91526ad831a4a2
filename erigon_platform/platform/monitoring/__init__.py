from .observability_stack import ObservabilityStack
