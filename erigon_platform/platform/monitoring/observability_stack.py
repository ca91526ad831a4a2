import logging

from aws_cdk import (
    Stack,
    aws_aps as aps,
    aws_ec2 as ec2,
    aws_eks as eks,
    aws_grafana as grafana,
    aws_iam as iam,
    aws_kms as kms,
    aws_logs as logs,
    RemovalPolicy,
    CfnOutput
)
from constructs import Construct
from erigon_platform.config import MonitoringConfig, constants
from erigon_platform.infrastructure.compute.irsa import service_account_principal

logger = logging.getLogger(__name__)


class ObservabilityStack(Stack):
    """
    Creates the Amazon Managed Prometheus workspace fed by kube-prometheus-stack, and an Amazon Managed Grafana workspace
    """

    def _get_retention_days(self, days: int) -> logs.RetentionDays:
        """Map the retention days to the correct RetentionDays enum value"""
        if days <= 1:
            return logs.RetentionDays.ONE_DAY
        elif days <= 3:
            return logs.RetentionDays.THREE_DAYS
        elif days <= 5:
            return logs.RetentionDays.FIVE_DAYS
        elif days <= 7:
            return logs.RetentionDays.ONE_WEEK
        elif days <= 14:
            return logs.RetentionDays.TWO_WEEKS
        elif days <= 30:
            return logs.RetentionDays.ONE_MONTH
        elif days <= 60:
            return logs.RetentionDays.TWO_MONTHS
        elif days <= 90:
            return logs.RetentionDays.THREE_MONTHS
        elif days <= 120:
            return logs.RetentionDays.FOUR_MONTHS
        elif days <= 150:
            return logs.RetentionDays.FIVE_MONTHS
        elif days <= 180:
            return logs.RetentionDays.SIX_MONTHS
        elif days <= 365:
            return logs.RetentionDays.ONE_YEAR
        elif days <= 400:
            return logs.RetentionDays.THIRTEEN_MONTHS
        elif days <= 545:
            return logs.RetentionDays.EIGHTEEN_MONTHS
        elif days <= 731:
            return logs.RetentionDays.TWO_YEARS
        elif days <= 1827:
            return logs.RetentionDays.FIVE_YEARS
        elif days <= 3653:
            return logs.RetentionDays.TEN_YEARS
        else:
            return logs.RetentionDays.INFINITE

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster: eks.Cluster,
        key: kms.IKey,
        vpc: ec2.IVpc,
        monitoring_config: MonitoringConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.cluster = cluster
        self.namespace = monitoring_config.namespace

        amp_log_group = logs.LogGroup(
            self,
            "AmpLogGroup",
            retention=self._get_retention_days(monitoring_config.retention_days),
            encryption_key=key,
            removal_policy=RemovalPolicy.DESTROY
        )

        self.prometheus_workspace = aps.CfnWorkspace(
            self,
            "PrometheusWorkspace",
            logging_configuration=aps.CfnWorkspace.LoggingConfigurationProperty(
                log_group_arn=amp_log_group.log_group_arn
            )
        )
        self.prometheus_workspace_id = self.prometheus_workspace.attr_workspace_id
        self.remote_write_url = (
            f"https://aps-workspaces.{self.region}.amazonaws.com/workspaces/"
            f"{self.prometheus_workspace_id}/api/v1/remote_write"
        )

        self.ingest_role = iam.Role(
            self,
            "IngestRole",
            assumed_by=service_account_principal(
                self, "IngestCondition",
                cluster=cluster,
                namespace=self.namespace,
                name=constants.AMP_INGEST_SERVICE_ACCOUNT
            ),
            description="Role for ingesting Prometheus metrics",
            inline_policies={
                "amp": iam.PolicyDocument(statements=[
                    iam.PolicyStatement(
                        actions=[
                            "aps:RemoteWrite",
                            "aps:GetSeries",
                            "aps:GetLabels",
                            "aps:GetMetricMetadata"
                        ],
                        effect=iam.Effect.ALLOW,
                        resources=[self.prometheus_workspace.attr_arn]
                    )
                ])
            }
        )

        self.query_role = iam.Role(
            self,
            "QueryRole",
            assumed_by=service_account_principal(
                self, "QueryCondition",
                cluster=cluster,
                namespace=self.namespace,
                name=constants.AMP_QUERY_SERVICE_ACCOUNT
            ),
            description="Role for querying Prometheus metrics",
            inline_policies={
                "amp": iam.PolicyDocument(statements=[
                    iam.PolicyStatement(
                        actions=[
                            "aps:QueryMetrics",
                            "aps:GetSeries",
                            "aps:GetLabels",
                            "aps:GetMetricMetadata"
                        ],
                        effect=iam.Effect.ALLOW,
                        resources=[self.prometheus_workspace.attr_arn]
                    )
                ])
            }
        )

        self._deploy_prometheus(monitoring_config)
        self._create_grafana_workspace(vpc)
        self._add_outputs()

    def _deploy_prometheus(self, monitoring_config: MonitoringConfig):
        """kube-prometheus-stack scraping the cluster and remote writing to AMP with SigV4"""
        logger.debug("Prometheus remote write target: %s", self.remote_write_url)
        self.prometheus_chart = eks.HelmChart(
            self,
            "Prometheus",
            cluster=self.cluster,
            chart="kube-prometheus-stack",
            repository="https://prometheus-community.github.io/helm-charts",
            namespace=self.namespace,
            release="kube-prometheus",
            create_namespace=True,
            version=monitoring_config.prometheus_chart_version,
            values={
                "prometheus": {
                    "serviceAccount": {
                        "create": True,
                        "name": constants.AMP_INGEST_SERVICE_ACCOUNT,
                        "annotations": {
                            "eks.amazonaws.com/role-arn": self.ingest_role.role_arn
                        }
                    },
                    "prometheusSpec": {
                        "remoteWrite": [{
                            "url": self.remote_write_url,
                            "sigv4": {
                                "region": self.region
                            },
                            "queueConfig": {
                                "maxSamplesPerSend": constants.REMOTE_WRITE_MAX_SAMPLES_PER_SEND,
                                "maxShards": constants.REMOTE_WRITE_MAX_SHARDS,
                                "capacity": constants.REMOTE_WRITE_CAPACITY
                            }
                        }]
                    }
                },
                "alertmanager": {
                    "enabled": False
                },
                "grafana": {
                    "enabled": False
                },
                "prometheusOperator": {
                    "tls": {
                        "enabled": False
                    },
                    "admissionWebhooks": {
                        "enabled": False,
                        "patch": {
                            "enabled": False
                        }
                    }
                }
            }
        )

    def _create_grafana_workspace(self, vpc: ec2.IVpc):
        """Managed Grafana inside the node subnets, authenticated through IAM Identity Center"""
        grafana_role = iam.Role(
            self,
            "GrafanaRole",
            assumed_by=iam.ServicePrincipal("grafana.amazonaws.com"),
            description="Role used to administer Grafana workspace for Ethereum",
            inline_policies={
                "list-amp": iam.PolicyDocument(statements=[
                    iam.PolicyStatement(
                        actions=["aps:ListWorkspaces"],
                        effect=iam.Effect.ALLOW,
                        resources=[f"arn:aws:aps:{self.region}:{self.account}:/workspaces"]
                    )
                ]),
                "query-amp": iam.PolicyDocument(statements=[
                    iam.PolicyStatement(
                        actions=[
                            "aps:GetLabels",
                            "aps:GetMetricMetadata",
                            "aps:GetSeries",
                            "aps:QueryMetrics",
                            "aps:DescribeWorkspace"
                        ],
                        effect=iam.Effect.ALLOW,
                        resources=[self.prometheus_workspace.attr_arn]
                    )
                ])
            }
        )

        grafana_security_group = ec2.SecurityGroup(
            self,
            "GrafanaSG",
            vpc=vpc,
            allow_all_outbound=True,
            description="Amazon Managed Grafana Security Group for Ethereum"
        )

        self.grafana_workspace = grafana.CfnWorkspace(
            self,
            "Grafana",
            account_access_type="CURRENT_ACCOUNT",
            description="Ethereum Client",
            permission_type="SERVICE_MANAGED",
            role_arn=grafana_role.role_arn,
            authentication_providers=["AWS_SSO"],
            data_sources=["PROMETHEUS"],
            notification_destinations=["SNS"],
            vpc_configuration=grafana.CfnWorkspace.VpcConfigurationProperty(
                security_group_ids=[grafana_security_group.security_group_id],
                subnet_ids=vpc.select_subnets(subnet_group_name=constants.NODES_SUBNET_GROUP).subnet_ids
            )
        )

    def _add_outputs(self):
        """Add CloudFormation outputs"""
        CfnOutput(
            self,
            "PrometheusWorkspaceId",
            value=self.prometheus_workspace_id,
            description="ID of the Amazon Managed Prometheus workspace"
        )

        CfnOutput(
            self,
            "PrometheusRemoteWriteUrl",
            value=self.remote_write_url,
            description="Remote write endpoint of the Amazon Managed Prometheus workspace"
        )

        CfnOutput(
            self,
            "GrafanaWorkspaceUrl",
            value=f"https://{self.grafana_workspace.attr_endpoint}",
            description="URL for the Grafana workspace"
        )

        CfnOutput(
            self,
            "PrometheusQueryRoleArn",
            value=self.query_role.role_arn,
            description="ARN of the role for querying Prometheus metrics"
        )
