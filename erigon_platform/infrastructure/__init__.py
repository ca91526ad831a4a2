from .network import VpcStack
from .compute import EksClusterStack, NodeGroupStack
