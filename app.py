#!/usr/bin/env python3
import logging
import os

from aws_cdk import App, Environment, Aspects
from cdk_nag import AwsSolutionsChecks

from erigon_platform import EnvironmentConfig, create_platform
from erigon_platform.nag_suppressions import add_nag_suppressions

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("erigon_platform.app")

# Initialize the CDK app
app = App()
Aspects.of(app).add(AwsSolutionsChecks(verbose=True))

# Create environment configuration
account = os.getenv('CDK_DEFAULT_ACCOUNT')
region = os.getenv('CDK_DEFAULT_REGION')
cdk_env = Environment(account=account, region=region)

config = EnvironmentConfig.from_context(app.node, account, region)
logger.info(
    "Synthesizing EKS %s platform in %s/%s (stack prefix %r, VPC %s)",
    config.eks.version, account, region, config.stack_prefix, config.network.vpc_cidr
)

# Create the VPC, EKS, NodeGroup, EKSK8sBaseline and Observe stacks
stacks = create_platform(app, config, cdk_env)

# Apply cdk-nag suppressions
add_nag_suppressions(stacks)

# Synthesize the CloudFormation templates
app.synth()
