"""Build ClusterState snapshots from informer caches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ebs_operator.cache import ObjectCache
from ebs_operator.constants import CLUSTER_CSI_DRIVER_NAME
from ebs_operator.errors import TransientLookupError
from ebs_operator.state import INFRASTRUCTURE_NAME, ClusterState, Infrastructure, OperatorSpec, hash_data

logger = logging.getLogger(__name__)


@dataclass
class StateSources:
    """Caches a domain reads its ClusterState from.

    Attributes:
        infrastructure: Cluster-scoped Infrastructure cache
        config_maps: ConfigMap caches, one per watched namespace
        nodes: Node cache
        secrets: Secret caches, one per watched namespace
        operator: ClusterCSIDriver cache holding the operator spec
    """

    infrastructure: ObjectCache | None = None
    config_maps: list[ObjectCache] = field(default_factory=list)
    nodes: ObjectCache | None = None
    secrets: list[ObjectCache] = field(default_factory=list)
    operator: ObjectCache | None = None

    def caches(self) -> list[ObjectCache]:
        caches = [*self.config_maps, *self.secrets]
        if self.infrastructure is not None:
            caches.append(self.infrastructure)
        if self.nodes is not None:
            caches.append(self.nodes)
        if self.operator is not None:
            caches.append(self.operator)
        return caches

    def unsynced(self) -> list[ObjectCache]:
        return [cache for cache in self.caches() if not cache.synced]

    def wait_for_sync(self) -> None:
        """Check that every cache has completed its initial list.

        Raises:
            TransientLookupError: If any cache has not synced yet
        """
        pending = self.unsynced()
        if pending:
            names = ", ".join(f"{c.kind}/{c.namespace or '*'}" for c in pending)
            raise TransientLookupError(f"waiting for caches to sync: {names}")

    def snapshot(self) -> ClusterState:
        """Take a consistent-enough snapshot of every cache.

        Caches that have not synced yet contribute nothing. Controllers that
        apply the result call wait_for_sync first.
        """
        infrastructure = None
        if self.infrastructure is not None:
            try:
                obj = self.infrastructure.get(INFRASTRUCTURE_NAME, namespace="")
            except TransientLookupError as e:
                logger.debug("Infrastructure not available: %s", e)
            else:
                if obj is not None:
                    infrastructure = Infrastructure.from_object(obj)

        config_maps = {}
        for cache in self.config_maps:
            for obj in _list_or_empty(cache):
                meta = obj.get("metadata") or {}
                config_maps[(meta.get("namespace", ""), meta.get("name", ""))] = obj.get("data") or {}

        secret_hashes = {}
        for cache in self.secrets:
            for obj in _list_or_empty(cache):
                meta = obj.get("metadata") or {}
                secret_hashes[(meta.get("namespace", ""), meta.get("name", ""))] = hash_data(obj.get("data") or {})

        nodes = None
        if self.nodes is not None:
            try:
                nodes = tuple((n.get("metadata") or {}).get("labels") or {} for n in self.nodes.list())
            except TransientLookupError as e:
                logger.debug("Nodes not available: %s", e)

        return ClusterState(
            infrastructure=infrastructure,
            config_maps=config_maps,
            nodes=nodes,
            secret_hashes=secret_hashes,
        )

    def operator_object(self) -> dict[str, Any]:
        """Get the ClusterCSIDriver object.

        Raises:
            TransientLookupError: If the cache has not synced or the object does not exist
        """
        if self.operator is None:
            raise TransientLookupError("no ClusterCSIDriver cache configured")
        obj = self.operator.get(CLUSTER_CSI_DRIVER_NAME, namespace="")
        if obj is None:
            raise TransientLookupError(f"ClusterCSIDriver {CLUSTER_CSI_DRIVER_NAME} does not exist")
        return obj

    def operator_spec(self, strict: bool = False) -> OperatorSpec:
        """Get the spec of the ClusterCSIDriver.

        Args:
            strict: Raise instead of falling back to defaults when the object is not cached

        Raises:
            TransientLookupError: If strict and the object is not cached
        """
        try:
            obj = self.operator_object()
        except TransientLookupError as e:
            if strict:
                raise
            logger.debug("Operator spec not available: %s", e)
            return OperatorSpec()
        return OperatorSpec.model_validate(obj.get("spec") or {})


def _list_or_empty(cache: ObjectCache) -> list:
    try:
        return cache.list()
    except TransientLookupError as e:
        logger.debug("%s", e)
        return []
