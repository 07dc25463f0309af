"""Read-only cluster state consumed by pipeline hooks.

A ClusterState is a snapshot taken from the informer caches at the start of a
reconciliation tick. Hooks only ever read it.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

INFRASTRUCTURE_NAME = "cluster"


class ResourceTag(BaseModel):
    """User-defined AWS resource tag."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class ServiceEndpoint(BaseModel):
    """Custom AWS service endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str


class Infrastructure(BaseModel):
    """The parts of the cluster Infrastructure object the hooks use."""

    model_config = ConfigDict(frozen=True)

    infrastructure_name: str = ""
    platform_type: str = ""
    region: str = ""
    resource_tags: tuple[ResourceTag, ...] = ()
    service_endpoints: tuple[ServiceEndpoint, ...] = ()
    has_aws_status: bool = True
    """False when status.platformStatus.aws is missing entirely"""

    @classmethod
    def from_object(cls, obj: Mapping[str, Any]) -> Infrastructure:
        """Build from an Infrastructure resource dict (config.openshift.io/v1)."""
        status = obj.get("status") or {}
        platform_status = status.get("platformStatus") or {}
        infrastructure_name = status.get("infrastructureName", "")
        aws = platform_status.get("aws")
        if aws is None:
            return cls(
                infrastructure_name=infrastructure_name,
                platform_type=platform_status.get("type", ""),
                has_aws_status=False,
            )
        return cls(
            infrastructure_name=infrastructure_name,
            platform_type=platform_status.get("type", ""),
            region=aws.get("region", ""),
            resource_tags=tuple(ResourceTag(**t) for t in aws.get("resourceTags") or []),
            service_endpoints=tuple(ServiceEndpoint(**e) for e in aws.get("serviceEndpoints") or []),
        )

    def endpoint(self, name: str) -> str:
        """Get the URL of a named service endpoint (last match wins), or ''."""
        url = ""
        for endpoint in self.service_endpoints:
            if endpoint.name == name:
                url = endpoint.url
        return url


class OperatorSpec(BaseModel):
    """Relevant fields of the operator custom resource spec."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    management_state: str = Field(default="Managed", alias="managementState")
    log_level: str = Field(default="Normal", alias="logLevel")
    operator_log_level: str = Field(default="Normal", alias="operatorLogLevel")
    observed_config: dict[str, Any] = Field(default_factory=dict, alias="observedConfig")

    @property
    def is_managed(self) -> bool:
        return self.management_state == "Managed"

    def observed_proxy(self) -> dict[str, str]:
        """Get the proxy settings observed from the cluster Proxy config."""
        target = self.observed_config.get("targetcsiconfig") or {}
        proxy = target.get("proxy") or {}
        return {k: v for k, v in proxy.items() if isinstance(v, str)}


def _freeze(data: Mapping[Any, Any] | None) -> Mapping[Any, Any]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class ClusterState:
    """Snapshot of external cluster metadata.

    Attributes:
        infrastructure: Infrastructure metadata, None if not cached yet
        config_maps: ConfigMap data keyed by (namespace, name)
        nodes: Label sets of known nodes, None if the node cache is not synced
        secret_hashes: Content hash of secrets keyed by (namespace, name)
    """

    infrastructure: Infrastructure | None = None
    config_maps: Mapping[tuple[str, str], Mapping[str, str]] = field(default_factory=dict)
    nodes: tuple[Mapping[str, str], ...] | None = None
    secret_hashes: Mapping[tuple[str, str], str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "config_maps",
            MappingProxyType({k: _freeze(v) for k, v in self.config_maps.items()}),
        )
        object.__setattr__(self, "secret_hashes", _freeze(self.secret_hashes))
        if self.nodes is not None:
            object.__setattr__(self, "nodes", tuple(_freeze(n) for n in self.nodes))

    def config_map(self, namespace: str, name: str) -> Mapping[str, str] | None:
        """Get ConfigMap data, or None if the ConfigMap does not exist."""
        return self.config_maps.get((namespace, name))

    def secret_hash(self, namespace: str, name: str) -> str | None:
        return self.secret_hashes.get((namespace, name))

    def count_nodes(self, selector: Mapping[str, str]) -> int | None:
        """Count nodes whose labels match every key of selector.

        Returns:
            Number of matching nodes, or None if node data is unavailable
        """
        if self.nodes is None:
            return None
        return sum(1 for labels in self.nodes if all(labels.get(k) == v for k, v in selector.items()))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClusterState:
        """Build a snapshot from a plain description (used by the render command).

        Example:
            infrastructure: {status: {platformStatus: {type: AWS, aws: {region: us-east-1}}}}
            configMaps: {openshift-cluster-csi-drivers/kube-cloud-config: {ca-bundle.pem: ...}}
            nodes: [{node-role.kubernetes.io/master: ""}]
            secrets: {openshift-cluster-csi-drivers/ebs-cloud-credentials: {aws_access_key_id: ...}}
        """
        infra_obj = data.get("infrastructure")
        infrastructure = Infrastructure.from_object(infra_obj) if infra_obj else None

        config_maps = {}
        for key, cm_data in (data.get("configMaps") or {}).items():
            namespace, _, name = key.partition("/")
            config_maps[(namespace, name)] = cm_data or {}

        secret_hashes = {}
        for key, secret_data in (data.get("secrets") or {}).items():
            namespace, _, name = key.partition("/")
            secret_hashes[(namespace, name)] = hash_data(secret_data or {})

        nodes = data.get("nodes")
        return cls(
            infrastructure=infrastructure,
            config_maps=config_maps,
            nodes=tuple(nodes) if nodes is not None else None,
            secret_hashes=secret_hashes,
        )


def hash_data(data: Mapping[str, Any]) -> str:
    """Stable content hash of a ConfigMap or Secret data mapping."""
    encoded = json.dumps(dict(data), sort_keys=True, separators=(",", ":")).encode()
    return hashlib.sha256(encoded).hexdigest()
