from .k8s_baseline_stack import K8sBaselineStack
