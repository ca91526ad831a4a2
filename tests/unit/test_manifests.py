from erigon_platform.manifests import (
    CONSOLE_VIEW_ONLY_GROUP,
    FLUENT_BIT_SETUP,
    clean_manifest,
    load_manifest,
)


def test_fluent_bit_manifest_cleaned():
    kinds = sorted(element["kind"] for element in clean_manifest(FLUENT_BIT_SETUP))

    assert kinds == ["ClusterRole", "ClusterRoleBinding", "ConfigMap", "DaemonSet"]


def test_fluent_bit_manifest_keeps_upstream_objects():
    kinds = {element["kind"] for element in load_manifest(FLUENT_BIT_SETUP)}

    assert {"Namespace", "ServiceAccount"} <= kinds


def test_console_view_only_group():
    manifest = clean_manifest(CONSOLE_VIEW_ONLY_GROUP)

    assert [element["kind"] for element in manifest] == ["ClusterRole", "ClusterRoleBinding"]
    subjects = manifest[1]["subjects"]
    assert subjects[0]["name"] == "eks-console-dashboard-full-access-group"


def test_empty_documents_skipped(tmp_path):
    manifest_file = tmp_path / "manifest.yaml"
    manifest_file.write_text(
        "---\n"
        "apiVersion: v1\n"
        "kind: Namespace\n"
        "metadata:\n"
        "  name: demo\n"
        "---\n"
        "---\n"
        "apiVersion: v1\n"
        "kind: ConfigMap\n"
        "metadata:\n"
        "  name: demo\n"
        "  namespace: demo\n"
    )

    assert len(load_manifest(manifest_file)) == 2
    assert [element["kind"] for element in clean_manifest(manifest_file)] == ["ConfigMap"]
