"""Tests for operator configuration."""

from pathlib import Path

import pytest

from ebs_operator.config import IMAGE_PLACEHOLDERS, OperatorConfig
from ebs_operator.pipeline import Topology

ENV_VARS = [
    "NAMESPACE",
    "OPERATOR_NAMESPACE",
    "KUBECONFIG",
    "GUEST_KUBECONFIG",
    "HYPERSHIFT_IMAGE",
    "DEBUG",
    "RESYNC_INTERVAL",
    *IMAGE_PLACEHOLDERS,
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the caller's environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestOperatorConfig:
    """Test suite for OperatorConfig."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = OperatorConfig()

        assert config.namespace == "openshift-cluster-csi-drivers"
        assert config.guest_namespace == "openshift-cluster-csi-drivers"
        assert config.kubeconfig is None
        assert config.guest_kubeconfig is None
        assert config.hypershift_image == ""
        assert config.resync_interval == 60.0
        assert config.max_backoff == 300.0
        assert config.debug is False
        assert config.topology is Topology.STANDALONE

    def test_environment(self, monkeypatch) -> None:
        """Test that the documented environment variables are read."""
        monkeypatch.setenv("OPERATOR_NAMESPACE", "clusters-hcp")
        monkeypatch.setenv("GUEST_KUBECONFIG", "/etc/guest/kubeconfig")
        monkeypatch.setenv("HYPERSHIFT_IMAGE", "quay.io/test/hypershift:latest")
        monkeypatch.setenv("DRIVER_IMAGE", "quay.io/test/driver:latest")

        config = OperatorConfig()

        assert config.namespace == "clusters-hcp"
        assert config.guest_kubeconfig == "/etc/guest/kubeconfig"
        assert config.hypershift_image == "quay.io/test/hypershift:latest"
        assert config.topology is Topology.HOSTED
        assert config.image_replacements() == {"DRIVER_IMAGE": "quay.io/test/driver:latest"}

    def test_kwargs(self) -> None:
        """Test construction by field name."""
        config = OperatorConfig(namespace="ns", kubeconfig="/tmp/kubeconfig", resync_interval=5)

        assert config.namespace == "ns"
        assert config.kubeconfig == Path("/tmp/kubeconfig")
        assert config.resync_interval == 5.0

    def test_from_yaml(self, tmp_path: Path, monkeypatch) -> None:
        """Test loading the operator section, which overrides the environment."""
        monkeypatch.setenv("OPERATOR_NAMESPACE", "from-env")
        monkeypatch.setenv("HYPERSHIFT_IMAGE", "from-env")
        config_file = tmp_path / "operator.yaml"
        config_file.write_text(
            "operator:\n"
            "  namespace: from-yaml\n"
            "  resync_interval: 10\n"
            "  debug: true\n"
            "other: ignored\n"
        )

        config = OperatorConfig.from_yaml(config_file)

        assert config.namespace == "from-yaml"
        assert config.hypershift_image == "from-env"
        assert config.resync_interval == 10.0
        assert config.debug is True

    def test_from_yaml_kwargs_win(self, tmp_path: Path) -> None:
        """Test that explicit kwargs override the file."""
        config_file = tmp_path / "operator.yaml"
        config_file.write_text("operator:\n  namespace: from-yaml\n")

        assert OperatorConfig.from_yaml(config_file, namespace="explicit").namespace == "explicit"

    def test_from_yaml_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file falls back to defaults."""
        config = OperatorConfig.from_yaml(tmp_path / "missing.yaml")

        assert config.namespace == "openshift-cluster-csi-drivers"

    def test_from_yaml_invalid_section(self, tmp_path: Path) -> None:
        """Test that a non-mapping operator section is ignored."""
        config_file = tmp_path / "operator.yaml"
        config_file.write_text("operator:\n  - a\n  - b\n")

        assert OperatorConfig.from_yaml(config_file).namespace == "openshift-cluster-csi-drivers"
