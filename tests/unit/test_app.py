def test_app_synth():
    """Test that the app can be synthesized without errors"""
    # Import app.py only inside the test to use the mocked environment
    import app

    stack_ids = [child.node.id for child in app.app.node.children]
    assert stack_ids == ["VPC", "EKS", "NodeGroup", "EKSK8sBaseline", "Observe"]
    assert app.config.stack_prefix == ""
    assert app.stacks.eks.cluster_name is not None
