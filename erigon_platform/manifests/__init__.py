"""
Kubernetes manifests shipped with the platform and helpers to load them
"""
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

MANIFEST_DIR = Path(__file__).parent

CONSOLE_VIEW_ONLY_GROUP = MANIFEST_DIR / "console_view_only_group.yaml"
FLUENT_BIT_SETUP = MANIFEST_DIR / "fluent_bit_setup.yaml"

# Created through eks.ServiceAccount / namespace manifests instead so the IAM role annotation is managed by CDK
DECLARATIVELY_MANAGED_KINDS = ("Namespace", "ServiceAccount")


def load_manifest(file: Union[str, Path]) -> List[Dict[str, Any]]:
    """Load every non-empty document of a multi-document YAML file"""
    with open(file, encoding="utf-8") as f:
        return [document for document in yaml.safe_load_all(f) if document]


def clean_manifest(file: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load a manifest without its Namespace and ServiceAccount objects.

    Performed in code to keep the upstream manifest files unmodified.
    """
    return [
        element for element in load_manifest(file)
        if element.get("kind") not in DECLARATIVELY_MANAGED_KINDS
    ]
