import logging

from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    aws_eks as eks,
    aws_iam as iam,
    aws_kms as kms,
    CfnOutput,
)
from aws_cdk.lambda_layer_kubectl_v32 import KubectlV32Layer
from constructs import Construct
from erigon_platform.config import EksConfig, constants
from erigon_platform.infrastructure.compute.irsa import service_account_principal
from erigon_platform.manifests import CONSOLE_VIEW_ONLY_GROUP, load_manifest

logger = logging.getLogger(__name__)


class EksClusterStack(Stack):
    """
    Creates a private EKS cluster with a bastion host, envelope encryption and managed add-ons
    """
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        vpc: ec2.IVpc,
        eks_config: EksConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.bastion_host = self._create_bastion_host(vpc, eks_config)

        # Need KMS Key for EKS Envelope Encryption, if deleted, KMS will wait default (30 days) time before removal.
        self.kms = kms.Key(self, "ekskmskey",
            enable_key_rotation=True
        )
        self._grant_key_usage()

        self.cluster = self._create_cluster(vpc, eks_config)

        self.cluster.cluster_security_group.add_ingress_rule(
            ec2.Peer.ipv4(vpc.vpc_cidr_block),
            ec2.Port.all_traffic(),
            "Allow VPC"
        )

        # Allow BastionHost security group access to EKS Control Plane
        self.bastion_host.connections.allow_to(
            self.cluster,
            ec2.Port.tcp(443),
            "Allow between BastionHost and EKS"
        )
        self._install_bastion_tooling()

        self._create_console_view_only_group()

        self._add_cluster_addons(eks_config)

        self._add_outputs()

    def _create_bastion_host(self, vpc: ec2.IVpc, eks_config: EksConfig) -> ec2.Instance:
        """Create the administrative host in the public subnets, reachable over SSH or Session Manager"""
        self.bastion_security_group = ec2.SecurityGroup(
            self, "bastionHostSecurityGroup",
            vpc=vpc,
            allow_all_outbound=False
        )
        self.bastion_security_group.connections.allow_to(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(443),
            "Outbound to 443 only"
        )
        self.bastion_security_group.connections.allow_from(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(22),
            "Allow SSH"
        )

        # https://docs.aws.amazon.com/eks/latest/userguide/security_iam_id-based-policy-examples.html#policy_example3
        bastion_host_policy = iam.ManagedPolicy(self, "bastionHostManagedPolicy")
        bastion_host_policy.add_statements(
            iam.PolicyStatement(
                sid="EKSReadonly",
                effect=iam.Effect.ALLOW,
                actions=[
                    "eks:DescribeNodegroup",
                    "eks:ListNodegroups",
                    "eks:DescribeCluster",
                    "eks:ListClusters",
                    "eks:AccessKubernetesApi",
                    "eks:ListUpdates",
                    "eks:ListFargateProfiles"
                ],
                resources=["*"]
            )
        )
        bastion_host_role = iam.Role(
            self, "bastionHostRole",
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore"),
                bastion_host_policy
            ]
        )

        key_pair = ec2.KeyPair(
            self, "BastionHost",
            key_pair_name=eks_config.bastion_key_pair_name
        )

        bastion_host = ec2.Instance(
            self, "BastionEKSHost",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=constants.DMZ_SUBNET_GROUP),
            key_pair=key_pair,
            instance_type=ec2.InstanceType(eks_config.bastion_instance_type),
            machine_image=ec2.MachineImage.from_ssm_parameter(constants.BASTION_AMI_PARAMETER),
            security_group=self.bastion_security_group,
            role=bastion_host_role,
            block_devices=[
                ec2.BlockDevice(
                    device_name="/dev/xvda",
                    volume=ec2.BlockDeviceVolume.ebs(
                        10,
                        volume_type=ec2.EbsDeviceVolumeType.GP3,
                        encrypted=True
                    )
                )
            ]
        )
        bastion_host.instance.add_property_override("DisableApiTermination", True)
        return bastion_host

    def _grant_key_usage(self):
        """Allow CloudWatch Logs and EBS (through EC2) in this account to use the cluster key"""
        self.kms.add_to_resource_policy(
            iam.PolicyStatement(
                principals=[iam.ServicePrincipal(f"logs.{self.region}.amazonaws.com")],
                actions=[
                    "kms:GenerateDataKey*",
                    "kms:Decrypt*",
                    "kms:Encrypt*",
                    "kms:Describe*",
                    "kms:ReEncrypt*"
                ],
                effect=iam.Effect.ALLOW,
                resources=["*"],
                conditions={
                    "StringEquals": {
                        "aws:SourceAccount": self.account
                    }
                }
            )
        )

        self.kms.add_to_resource_policy(
            iam.PolicyStatement(
                principals=[iam.ArnPrincipal("*")],
                actions=[
                    "kms:Encrypt",
                    "kms:Decrypt",
                    "kms:ReEncrypt*",
                    "kms:GenerateDataKey*",
                    "kms:DescribeKey"
                ],
                effect=iam.Effect.ALLOW,
                resources=["*"],
                conditions={
                    "StringEquals": {
                        "kms:CallerAccount": self.account,
                        "kms:ViaService": f"ec2.{self.region}.amazonaws.com"
                    },
                    "ForAnyValue:StringEquals": {
                        "kms:EncryptionContextKeys": "aws:ebs:id"
                    }
                }
            )
        )

    def _create_cluster(self, vpc: ec2.IVpc, eks_config: EksConfig) -> eks.Cluster:
        """
        Create the private EKS cluster.

        The bastion role is the cluster's masters role, which maps it to
        system:masters in aws-auth. Granting cluster-admin to the bastion keeps
        the deployment usable without extra steps and is an accepted risk.
        """
        logger.debug("Creating EKS %s cluster", eks_config.version)
        return eks.Cluster(self, "EKSCluster",
            version=eks.KubernetesVersion.of(eks_config.version),
            default_capacity=0,
            endpoint_access=eks.EndpointAccess.PRIVATE,
            vpc=vpc,
            kubectl_layer=KubectlV32Layer(self, "KubectlLayer"),
            secrets_encryption_key=self.kms,
            masters_role=self.bastion_host.role,
            vpc_subnets=[ec2.SubnetSelection(
                subnet_group_name=constants.CLUSTER_SUBNET_GROUP
            )],
            # Ensure EKS helper lambdas are in private subnets
            place_cluster_handler_in_vpc=True,
            cluster_logging=[
                eks.ClusterLoggingTypes.API,
                eks.ClusterLoggingTypes.AUTHENTICATOR,
                eks.ClusterLoggingTypes.SCHEDULER,
                eks.ClusterLoggingTypes.AUDIT,
                eks.ClusterLoggingTypes.CONTROLLER_MANAGER
            ]
        )

    def _install_bastion_tooling(self):
        """Install the AWS CLI, a kubectl matching the cluster version, kustomize and helm on the bastion"""
        self.bastion_host.user_data.add_commands(
            "yum update -y",
            "yum install -y git",
            "yum remove -y awscli",
            "rm -rf /usr/local/aws-cli",
            'curl "https://awscli.amazonaws.com/awscli-exe-linux-aarch64.zip" -o "awscliv2.zip"',
            "unzip awscliv2.zip -d awscliv2",
            "./awscliv2/aws/install",
            "ln -s /usr/local/bin/aws /usr/bin/aws",
            "rm -rf awscliv2.zip",
            f"curl -O {constants.KUBECTL_DOWNLOAD_URL}",
            "chmod +x ./kubectl",
            "mkdir -p $HOME/bin && cp ./kubectl $HOME/bin/kubectl && export PATH=$PATH:$HOME/bin",
            "echo 'export PATH=$PATH:$HOME/bin' >> ~/.bashrc",
            'curl -s "https://raw.githubusercontent.com/kubernetes-sigs/kustomize/master/hack/install_kustomize.sh" | bash',
            "curl -fsSL -o get_helm.sh https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3",
            "chmod 700 get_helm.sh",
            "./get_helm.sh",
            "rm -rf get_helm.sh",
            f"aws eks update-kubeconfig --name {self.cluster.cluster_name} --region {self.region}"
        )

    def _create_console_view_only_group(self):
        """Deploy the RBAC group giving the EKS web console read-only permissions"""
        # https://aws.github.io/aws-eks-best-practices/security/docs/iam.html#employ-least-privileged-access-when-creating-rolebindings-and-clusterrolebindings
        self.console_view_only_group = eks.KubernetesManifest(
            self, "eks-group-view-only",
            cluster=self.cluster,
            manifest=load_manifest(CONSOLE_VIEW_ONLY_GROUP)
        )
        self.cluster.aws_auth.node.add_dependency(self.console_view_only_group)

    def _add_cluster_addons(self, eks_config: EksConfig):
        """Add the networking, service proxy and DNS managed add-ons"""
        # Patch aws-node daemonset to use IRSA via EKS Addons, do before nodes are created
        # https://aws.github.io/aws-eks-best-practices/security/docs/iam/#update-the-aws-node-daemonset-to-use-irsa
        self.vpc_cni_role = iam.Role(
            self, "awsVpcCniRole",
            assumed_by=service_account_principal(
                self, "awsVpcCniconditionPolicy",
                cluster=self.cluster,
                namespace="kube-system",
                name="aws-node"
            )
        )
        self.vpc_cni_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonEKS_CNI_Policy")
        )

        self.vpc_cni_addon = eks.CfnAddon(
            self, "vpc-cni",
            addon_name="vpc-cni",
            resolve_conflicts="OVERWRITE",
            service_account_role_arn=self.vpc_cni_role.role_arn,
            cluster_name=self.cluster.cluster_name,
            addon_version=eks_config.addons.vpc_cni
        )

        self.kube_proxy_addon = eks.CfnAddon(
            self, "kube-proxy",
            addon_name="kube-proxy",
            resolve_conflicts="OVERWRITE",
            cluster_name=self.cluster.cluster_name,
            addon_version=eks_config.addons.kube_proxy
        )

        self.coredns_addon = eks.CfnAddon(
            self, "core-dns",
            addon_name="coredns",
            resolve_conflicts="OVERWRITE",
            cluster_name=self.cluster.cluster_name,
            addon_version=eks_config.addons.coredns
        )

    def create_nodegroup_role(self, construct_id: str) -> iam.Role:
        """
        Create a node IAM role mapped into aws-auth as a cluster node.

        Lives in the cluster stack because aws-auth rejects roles from other
        stacks to avoid a circular dependency.
        """
        role = iam.Role(
            self, construct_id,
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com")
        )
        role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonEKSWorkerNodePolicy")
        )
        role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonEC2ContainerRegistryReadOnly")
        )
        role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("CloudWatchAgentServerPolicy")
        )
        self.cluster.aws_auth.add_role_mapping(
            role,
            username="system:node:{{EC2PrivateDNSName}}",
            groups=["system:bootstrappers", "system:nodes"]
        )
        return role

    def _add_outputs(self):
        """Add CloudFormation outputs"""
        CfnOutput(self, "ClusterName",
            value=self.cluster.cluster_name,
            description="EKS cluster name"
        )

        CfnOutput(self, "ClusterArn",
            value=self.cluster.cluster_arn,
            description="EKS cluster ARN"
        )

        CfnOutput(self, "KmsKeyArn",
            value=self.kms.key_arn,
            description="KMS key used for EKS secrets envelope encryption"
        )

        CfnOutput(self, "BastionInstanceId",
            value=self.bastion_host.instance_id,
            description="Bastion host instance ID, connect with Session Manager or SSH"
        )

        CfnOutput(self, "KubectlConfigCommand",
            value=f"aws eks update-kubeconfig --name {self.cluster.cluster_name} --region {self.region}",
            description="Command to configure kubectl from the bastion host"
        )

    @property
    def cluster_name(self) -> str:
        """Get the cluster name"""
        return self.cluster.cluster_name
