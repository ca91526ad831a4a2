import logging

from aws_cdk import (
    Stack,
    aws_eks as eks,
    aws_kms as kms,
)
from constructs import Construct
from erigon_platform.config import BaselineConfig, constants
from erigon_platform.manifests import FLUENT_BIT_SETUP, clean_manifest
from erigon_platform.platform.baseline import policies

logger = logging.getLogger(__name__)


class K8sBaselineStack(Stack):
    """
    Deploys the cluster baseline: Fluent Bit, AWS Load Balancer Controller and the EBS CSI driver

    Service accounts are created by CDK so each one is annotated with its own
    IAM role. Chart versions come from BaselineConfig.
    """
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster: eks.Cluster,
        key: kms.IKey,
        baseline_config: BaselineConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.cluster = cluster

        self._deploy_fluent_bit()
        self._deploy_alb_ingress_controller(baseline_config)
        self._deploy_ebs_csi_driver(key, baseline_config)

    def _create_namespace(self, construct_id: str, name: str) -> eks.KubernetesManifest:
        return eks.KubernetesManifest(
            self, construct_id,
            cluster=self.cluster,
            manifest=[{
                "apiVersion": "v1",
                "kind": "Namespace",
                "metadata": {
                    "name": name,
                    "labels": {
                        "name": name
                    }
                }
            }]
        )

    def _deploy_fluent_bit(self):
        """
        Fluent Bit DaemonSet shipping logs to CloudWatch.

        Fluent Bit does not support IMDSv2, region and cluster name are passed
        through the fluent-bit-cluster-info ConfigMap instead.
        """
        # YAML contains fluentbit parser configurations, namespace and serviceaccount are removed to annotate with IAM Role
        manifest_fluent_bit_setup = clean_manifest(FLUENT_BIT_SETUP)
        logger.debug("Fluent Bit manifest has %d objects after cleaning", len(manifest_fluent_bit_setup))

        fluent_bit_namespace = self._create_namespace(
            "amazon-cloudwatch-namespace", constants.FLUENT_BIT_NAMESPACE
        )
        self.fluent_bit_sa = eks.ServiceAccount(
            self, "fluentbit-sa",
            name=constants.FLUENT_BIT_SERVICE_ACCOUNT,
            namespace=constants.FLUENT_BIT_NAMESPACE,
            cluster=self.cluster
        )
        self.fluent_bit_sa.node.add_dependency(fluent_bit_namespace)
        policies.create_fluentbit_policy(self, self.cluster.cluster_name, self.fluent_bit_sa.role)

        fluent_bit_cluster_info = eks.KubernetesManifest(
            self, "fluentbit-cluster-info",
            cluster=self.cluster,
            manifest=[{
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": {
                    "name": "fluent-bit-cluster-info",
                    "namespace": constants.FLUENT_BIT_NAMESPACE,
                    "labels": {
                        "name": "fluent-bit-cluster-info"
                    }
                },
                "data": {
                    "cluster.name": self.cluster.cluster_name,
                    "http.port": "2020",
                    "http.server": "On",
                    "logs.region": self.region,
                    "read.head": "Off",
                    "read.tail": "On"
                }
            }]
        )
        fluent_bit_cluster_info.node.add_dependency(fluent_bit_namespace)

        fluent_bit_resource = eks.KubernetesManifest(
            self, "fluentbit-resource",
            cluster=self.cluster,
            manifest=manifest_fluent_bit_setup
        )
        fluent_bit_resource.node.add_dependency(self.fluent_bit_sa)
        fluent_bit_resource.node.add_dependency(fluent_bit_cluster_info)

    def _deploy_alb_ingress_controller(self, baseline_config: BaselineConfig):
        """AWS Load Balancer Controller from the eks-charts repository"""
        alb_namespace = self._create_namespace(
            "alb-ingress-controller-namespace", constants.ALB_CONTROLLER_NAMESPACE
        )
        self.alb_sa = eks.ServiceAccount(
            self, "alb-ingress-controller-sa",
            name=constants.ALB_CONTROLLER_SERVICE_ACCOUNT,
            namespace=constants.ALB_CONTROLLER_NAMESPACE,
            cluster=self.cluster
        )
        self.alb_sa.node.add_dependency(alb_namespace)
        policies.create_alb_ingress_policy(self, self.cluster.cluster_name, self.alb_sa.role)

        # https://github.com/aws/eks-charts/blob/master/stable/aws-load-balancer-controller/values.yaml
        alb_ingress_helm_chart = eks.HelmChart(
            self, "alb-ingress-controller-chart",
            cluster=self.cluster,
            chart="aws-load-balancer-controller",
            repository="https://aws.github.io/eks-charts",
            release="aws-load-balancer-controller",
            namespace=constants.ALB_CONTROLLER_NAMESPACE,
            create_namespace=True,
            wait=True,
            version=baseline_config.alb_controller_chart_version,
            values={
                "clusterName": self.cluster.cluster_name,
                "defaultTags": {
                    "eks:cluster-name": self.cluster.cluster_name
                },
                # Needed when the ec2metadata endpoint is unavailable
                "region": self.region,
                "vpcId": self.cluster.vpc.vpc_id,
                "serviceAccount": {
                    "create": False,
                    "name": self.alb_sa.service_account_name
                }
            }
        )
        alb_ingress_helm_chart.node.add_dependency(self.alb_sa)

    def _deploy_ebs_csi_driver(self, key: kms.IKey, baseline_config: BaselineConfig):
        """EBS CSI driver, allowed to encrypt volumes with the cluster key"""
        self.ebs_sa = eks.ServiceAccount(
            self, "ebs-csi-controller-sa",
            name=constants.EBS_CSI_SERVICE_ACCOUNT,
            namespace=constants.EBS_CSI_NAMESPACE,
            cluster=self.cluster
        )
        policies.create_ebs_policy(self, self.cluster.cluster_name, self.ebs_sa.role)
        policies.create_ebs_encryption_policy(self, key, self.ebs_sa.role)

        # https://github.com/kubernetes-sigs/aws-ebs-csi-driver/blob/master/charts/aws-ebs-csi-driver/values.yaml
        ebs_csi_helm_chart = eks.HelmChart(
            self, "ebs-csi-helm-chart",
            cluster=self.cluster,
            chart="aws-ebs-csi-driver",
            repository="https://kubernetes-sigs.github.io/aws-ebs-csi-driver",
            release="aws-ebs-csi-driver",
            namespace=constants.EBS_CSI_NAMESPACE,
            create_namespace=True,
            wait=True,
            version=baseline_config.ebs_csi_driver_chart_version,
            values={
                "controller": {
                    "serviceAccount": {
                        "create": False,
                        "name": self.ebs_sa.service_account_name
                    },
                    "extraVolumeTags": {
                        "eks:cluster-name": self.cluster.cluster_name
                    }
                }
            }
        )
        ebs_csi_helm_chart.node.add_dependency(self.ebs_sa)
