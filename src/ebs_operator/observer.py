"""Observation of cluster-wide configuration into the operator spec.

ProxyConfigObserver copies the status of the cluster Proxy into
spec.observedConfig.targetcsiconfig.proxy of the ClusterCSIDriver, where the
with_observed_proxy hook reads it from.
"""

from __future__ import annotations

import logging
from typing import Any

from ebs_operator.cache import ObjectCache
from ebs_operator.constants import CLUSTER_PROXY_NAME
from ebs_operator.kube import OperatorClient
from ebs_operator.snapshot import StateSources

logger = logging.getLogger(__name__)

PROXY_FIELDS = ("httpProxy", "httpsProxy", "noProxy")


def observed_proxy(proxy: dict[str, Any] | None) -> dict[str, str]:
    """Get the non-empty proxy settings from a Proxy object's status."""
    status = (proxy or {}).get("status") or {}
    return {key: status[key] for key in PROXY_FIELDS if status.get(key)}


class ProxyConfigObserver:
    """Keeps the observed proxy configuration of the operator in step with the cluster.

    Attributes:
        name: Controller name
        proxies: Cache of cluster Proxy objects
        sources: Caches holding the current ClusterCSIDriver
        client: Writer for the ClusterCSIDriver spec
    """

    def __init__(self, name: str, proxies: ObjectCache, sources: StateSources, client: OperatorClient) -> None:
        self.name = name
        self.proxies = proxies
        self.sources = sources
        self.client = client

    def sync(self) -> bool:
        """Patch the observed proxy if it changed.

        Returns:
            True if the spec was patched

        Raises:
            TransientLookupError: If the Proxy or ClusterCSIDriver cache has not synced
        """
        observed = observed_proxy(self.proxies.get(CLUSTER_PROXY_NAME, namespace=""))
        current = self.sources.operator_spec(strict=True).observed_proxy()
        if observed == current:
            return False

        # Merge patch: None removes settings that are no longer set
        proxy = {key: observed.get(key) for key in PROXY_FIELDS}
        self.client.patch_spec({"observedConfig": {"targetcsiconfig": {"proxy": proxy}}})
        logger.info(
            "Observed proxy configuration changed: %s",
            ", ".join(sorted(observed)) or "none",
            extra={"event": "proxy_observed"},
        )
        return True
