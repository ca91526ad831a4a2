from .eks_cluster_stack import EksClusterStack
from .node_group_stack import NodeGroupStack
