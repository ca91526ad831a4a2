import json
import os
import re
import pytest
from unittest.mock import patch

from aws_cdk import App, Environment, assertions

from erigon_platform import EnvironmentConfig, create_platform

ACCOUNT = "123456789012"
REGION = "us-east-1"

# Cached lookup result so the VPC sees real zone names, including one EKS does not support
AZ_CONTEXT = {
    f"availability-zones:account={ACCOUNT}:region={REGION}": [
        "us-east-1a", "us-east-1b", "us-east-1c", "us-east-1e"
    ]
}

SERVICE_ACCOUNT_SUBJECT = re.compile(r"system:serviceaccount:[A-Za-z0-9\-\*]+:[A-Za-z0-9\-\*]+")


@pytest.fixture(scope="function", autouse=True)
def mock_environment():
    """Mock AWS environment variables for all tests"""
    with patch.dict(os.environ, {
        "CDK_DEFAULT_ACCOUNT": ACCOUNT,
        "CDK_DEFAULT_REGION": REGION
    }):
        yield


def build_platform(context=None):
    """Create the full platform in a fresh App"""
    app = App(context={**AZ_CONTEXT, **(context or {})})
    config = EnvironmentConfig.from_context(app.node, ACCOUNT, REGION)
    stacks = create_platform(app, config, Environment(account=ACCOUNT, region=REGION))
    return app, stacks


@pytest.fixture(scope="session")
def platform():
    _, stacks = build_platform({
        "nodeGroupMinSize": 1,
        "nodeGroupDesiredSize": 2,
        "nodeGroupMaxSize": 3,
        "availability_zones": "us-east-1a, us-east-1b",
    })
    return stacks


@pytest.fixture(scope="session")
def templates(platform):
    return {
        "vpc": assertions.Template.from_stack(platform.vpc),
        "eks": assertions.Template.from_stack(platform.eks),
        "node_group": assertions.Template.from_stack(platform.node_group),
        "baseline": assertions.Template.from_stack(platform.baseline),
        "observability": assertions.Template.from_stack(platform.observability),
    }


def flatten_join(value, token="TOKEN"):
    """Render a string or Fn::Join of strings, replacing intrinsic functions with a placeholder

    ``token`` is either the placeholder string or a callable rendering the intrinsic.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and "Fn::Join" in value:
        delimiter, parts = value["Fn::Join"]
        return delimiter.join(flatten_join(part, token) for part in parts)
    return token(value) if callable(token) else token


def load_json_property(value):
    """Parse a JSON document CDK rendered into a template property"""
    return json.loads(flatten_join(value))


def service_account_subjects(template):
    """Service account subjects of every IRSA trust condition in the template"""
    subjects = []
    for resource in template.find_resources("Custom::AWSCDKCfnJson").values():
        rendered = flatten_join(resource["Properties"]["Value"])
        if "serviceaccount" in rendered:
            subjects.append(SERVICE_ACCOUNT_SUBJECT.findall(rendered))
    return subjects
