"""
Constants used throughout the Erigon EKS Platform
"""

# EKS Configuration
EKS_VERSION = "1.32"
# Versions matching the pinned kubectl layer and KUBECTL_DOWNLOAD_URL
SUPPORTED_EKS_VERSIONS = (EKS_VERSION,)
KUBECTL_DOWNLOAD_URL = (
    "https://s3.us-west-2.amazonaws.com/amazon-eks/1.32.0/2024-12-20/bin/linux/arm64/kubectl"
)

# Managed add-on versions for EKS 1.32
VPC_CNI_ADDON_VERSION = "v1.19.2-eksbuild.1"
KUBE_PROXY_ADDON_VERSION = "v1.32.0-eksbuild.2"
COREDNS_ADDON_VERSION = "v1.11.4-eksbuild.2"

# Availability zones where EKS cannot place control plane ENIs
EKS_UNSUPPORTED_AZS = ("us-east-1e",)

# Subnet groups, referenced by name from every stack
DMZ_SUBNET_GROUP = "eks-dmz"
CLUSTER_SUBNET_GROUP = "eks-cluster"
NODES_SUBNET_GROUP = "eks-nodes"

# Network Defaults
DEFAULT_VPC_CIDR = "10.0.0.0/16"

# Bastion Host
BASTION_INSTANCE_TYPE = "t4g.nano"
BASTION_KEY_PAIR_NAME = "bastionHostKeyPair"
BASTION_AMI_PARAMETER = "/aws/service/ami-amazon-linux-latest/amzn2-ami-hvm-arm64-gp2"

# Node Group Defaults
NODE_GROUP_INSTANCE_TYPE = "r7g.2xlarge"
NODE_GROUP_MIN_SIZE = 1
NODE_GROUP_DESIRED_SIZE = 1
NODE_GROUP_MAX_SIZE = 1

# Helm chart versions
ALB_CONTROLLER_CHART_VERSION = "1.11.0"
EBS_CSI_DRIVER_CHART_VERSION = "2.39.3"
KUBE_PROMETHEUS_STACK_CHART_VERSION = "69.8.2"

# Namespaces and service accounts
FLUENT_BIT_NAMESPACE = "amazon-cloudwatch"
FLUENT_BIT_SERVICE_ACCOUNT = "fluent-bit"
ALB_CONTROLLER_NAMESPACE = "alb-ingress-controller"
ALB_CONTROLLER_SERVICE_ACCOUNT = "alb-ingress-controller-sa"
EBS_CSI_NAMESPACE = "kube-system"
EBS_CSI_SERVICE_ACCOUNT = "ebs-csi-controller-sa"
MONITORING_NAMESPACE = "monitoring"
AMP_INGEST_SERVICE_ACCOUNT = "amp-iamproxy-ingest-service-account"
AMP_QUERY_SERVICE_ACCOUNT = "amp-iamproxy-query-service-account"

# Prometheus remote write queue tuning
REMOTE_WRITE_MAX_SAMPLES_PER_SEND = 1000
REMOTE_WRITE_MAX_SHARDS = 200
REMOTE_WRITE_CAPACITY = 2500

# Monitoring Defaults
AMP_LOG_RETENTION_DAYS = 7
