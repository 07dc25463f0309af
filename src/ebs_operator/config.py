"""Configuration management for the operator.

Configuration Sources (Highest to Lowest Priority):
===================================================

1. **YAML file** passed with `--config` (an `operator:` section)
2. **Environment variables** (case-insensitive), e.g. `HYPERSHIFT_IMAGE`,
   `GUEST_KUBECONFIG`, `OPERATOR_NAMESPACE`, `DRIVER_IMAGE`
3. **Defaults**

The topology is derived once from `guest_kubeconfig`: when it is set the
operator runs in hosted control plane mode.

Example:
--------
operator:
  namespace: openshift-cluster-csi-drivers
  resync_interval: 60
  debug: true
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ebs_operator.constants import DEFAULT_NAMESPACE
from ebs_operator.pipeline.topology import Topology

logger = logging.getLogger(__name__)

# Placeholder in the assets -> config field holding the image
IMAGE_PLACEHOLDERS = {
    "DRIVER_IMAGE": "driver_image",
    "PROVISIONER_IMAGE": "provisioner_image",
    "ATTACHER_IMAGE": "attacher_image",
    "RESIZER_IMAGE": "resizer_image",
    "SNAPSHOTTER_IMAGE": "snapshotter_image",
    "NODE_DRIVER_REGISTRAR_IMAGE": "node_driver_registrar_image",
    "LIVENESS_PROBE_IMAGE": "liveness_probe_image",
    "KUBE_RBAC_PROXY_IMAGE": "kube_rbac_proxy_image",
}


def _env(name: str, env_name: str) -> AliasChoices:
    return AliasChoices(name, env_name)


class OperatorConfig(BaseSettings):
    """Main configuration for the operator."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    debug: bool = False
    namespace: str = Field(default=DEFAULT_NAMESPACE, validation_alias=_env("namespace", "OPERATOR_NAMESPACE"))
    guest_namespace: str = DEFAULT_NAMESPACE

    # Cluster connections
    kubeconfig: Path | None = Field(default=None, validation_alias=_env("kubeconfig", "KUBECONFIG"))
    """Management cluster kubeconfig, in-cluster config when unset"""

    guest_kubeconfig: str | None = Field(default=None, validation_alias=_env("guest_kubeconfig", "GUEST_KUBECONFIG"))
    """Workload cluster kubeconfig; its presence selects the hosted topology"""

    # Hosted control plane token minter image
    hypershift_image: str = Field(default="", validation_alias=_env("hypershift_image", "HYPERSHIFT_IMAGE"))

    # Loop timing (seconds)
    resync_interval: float = 60.0
    initial_backoff: float = 1.0
    max_backoff: float = 300.0

    # Operand images
    driver_image: str = ""
    provisioner_image: str = ""
    attacher_image: str = ""
    resizer_image: str = ""
    snapshotter_image: str = ""
    node_driver_registrar_image: str = ""
    liveness_probe_image: str = ""
    kube_rbac_proxy_image: str = ""

    @property
    def topology(self) -> Topology:
        return Topology.from_guest_kubeconfig(self.guest_kubeconfig)

    def image_replacements(self) -> dict[str, str]:
        """Get asset placeholder values for every configured image."""
        replacements = {}
        for placeholder, field_name in IMAGE_PLACEHOLDERS.items():
            value = getattr(self, field_name)
            if value:
                replacements[placeholder] = value
            else:
                logger.debug("No image configured for %s", placeholder)
        return replacements

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "OperatorConfig":
        """Load configuration from a YAML file, on top of the environment.

        Args:
            yaml_path: Path to the YAML file
            **kwargs: Additional keyword arguments

        Returns:
            OperatorConfig instance
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                loaded = yaml.safe_load(f) or {}
            data = loaded.get("operator") or {}
            if not isinstance(data, dict):
                logger.warning(f"Invalid operator config format in {yaml_path}: {type(data)}")
                data = {}
        else:
            logger.info(f"Config file {yaml_path} not found, using environment and defaults")

        return cls(**{**data, **kwargs})
