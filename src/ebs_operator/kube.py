"""Kubernetes client adapters.

Narrow interfaces the core calls into (resource apply, capability probe,
informers), with implementations on top of the official kubernetes client.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import NotFoundError, ResourceNotFoundError

from ebs_operator.cache import ObjectCache
from ebs_operator.constants import CLUSTER_CSI_DRIVER_NAME, CLUSTER_CSI_DRIVER_RESOURCE, OPERATOR_NAME
from ebs_operator.errors import IrrecoverableWiringError

logger = logging.getLogger(__name__)

# Seconds between relist attempts after a watch failure
_WATCH_RETRY_DELAY = 5.0

# Server-side timeout of a single watch request
_WATCH_TIMEOUT = 300

MERGE_PATCH = "application/merge-patch+json"


class KindNotServedError(Exception):
    """The API server does not serve the requested kind (e.g. CRD missing)."""


class ResourceApplier(ABC):
    """Applies desired state to a cluster."""

    @abstractmethod
    def apply(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Apply obj and return the applied object.

        Raises:
            KindNotServedError: If the kind is unknown to the API server
        """

    @abstractmethod
    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        """Delete an object. Returns False if it did not exist."""


class CapabilityProbe(ABC):
    """Checks whether an extension resource type is installed."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check whether the named CustomResourceDefinition exists. May raise."""


class KubeResourceApplier(ResourceApplier):
    """ResourceApplier using server-side apply through the dynamic client."""

    def __init__(self, dynamic_client: DynamicClient, field_manager: str = OPERATOR_NAME) -> None:
        self.client = dynamic_client
        self.field_manager = field_manager

    def _resource(self, api_version: str, kind: str) -> Any:
        try:
            return self.client.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise KindNotServedError(f"{kind}.{api_version} is not served by the API server") from e

    def apply(self, obj: dict[str, Any]) -> dict[str, Any]:
        resource = self._resource(obj["apiVersion"], obj["kind"])
        metadata = obj.get("metadata") or {}
        result = resource.server_side_apply(
            body=obj,
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            field_manager=self.field_manager,
            force_conflicts=True,
        )
        logger.debug("Applied %s %s/%s", obj["kind"], metadata.get("namespace", ""), metadata.get("name"))
        return result.to_dict()

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        resource = self._resource(api_version, kind)
        try:
            resource.delete(name=name, namespace=namespace)
        except NotFoundError:
            return False
        logger.info("Deleted %s %s/%s", kind, namespace or "", name)
        return True


class CrdCapabilityProbe(CapabilityProbe):
    """CapabilityProbe reading CustomResourceDefinitions."""

    def __init__(self, api: client.ApiextensionsV1Api) -> None:
        self.api = api

    def exists(self, name: str) -> bool:
        try:
            self.api.read_custom_resource_definition(name)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True


class OperatorClient(ABC):
    """Writes to the operator custom resource (ClusterCSIDriver)."""

    @abstractmethod
    def patch_spec(self, spec: dict[str, Any]) -> None:
        """Merge-patch spec fields. A None value removes the field."""

    @abstractmethod
    def patch_status(self, status: dict[str, Any]) -> None:
        """Merge-patch the status subresource."""


class KubeOperatorClient(OperatorClient):
    """OperatorClient on top of the custom objects API."""

    def __init__(self, api: client.CustomObjectsApi, name: str = CLUSTER_CSI_DRIVER_NAME) -> None:
        self.api = api
        self.name = name

    def patch_spec(self, spec: dict[str, Any]) -> None:
        self.api.patch_cluster_custom_object(
            name=self.name,
            body={"spec": spec},
            _content_type=MERGE_PATCH,
            **CLUSTER_CSI_DRIVER_RESOURCE,
        )
        logger.debug("Patched spec of ClusterCSIDriver %s", self.name)

    def patch_status(self, status: dict[str, Any]) -> None:
        self.api.patch_cluster_custom_object_status(
            name=self.name,
            body={"status": status},
            _content_type=MERGE_PATCH,
            **CLUSTER_CSI_DRIVER_RESOURCE,
        )
        logger.debug("Patched status of ClusterCSIDriver %s", self.name)


class KubeInformer:
    """List+watch loop feeding an ObjectCache.

    Args:
        cache: Cache to populate
        list_fn: A kubernetes client list function (e.g. CoreV1Api.list_namespaced_config_map)
        **list_kwargs: Arguments for list_fn (namespace, group, plural, ...)
    """

    def __init__(self, cache: ObjectCache, list_fn: Callable[..., Any], **list_kwargs: Any) -> None:
        self.cache = cache
        self.list_fn = list_fn
        self.list_kwargs = list_kwargs
        self._serializer = client.ApiClient()

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._serializer.sanitize_for_serialization(obj)

    def _list(self) -> str:
        response = self.list_fn(**self.list_kwargs)
        if isinstance(response, dict):
            items = response.get("items") or []
            resource_version = (response.get("metadata") or {}).get("resourceVersion", "")
        else:
            items = response.items or []
            resource_version = response.metadata.resource_version or ""
        self.cache.replace([self._to_dict(i) for i in items])
        return resource_version

    def run(self, stop: threading.Event) -> None:
        """Run until stop is set. Blocking; run it in a worker thread."""
        while not stop.is_set():
            try:
                resource_version = self._list()
                watcher = watch.Watch()
                for event in watcher.stream(
                    self.list_fn,
                    resource_version=resource_version,
                    timeout_seconds=_WATCH_TIMEOUT,
                    **self.list_kwargs,
                ):
                    if stop.is_set():
                        watcher.stop()
                        break
                    obj = event.get("raw_object") or self._to_dict(event["object"])
                    if event["type"] == "DELETED":
                        self.cache.delete(obj)
                    elif event["type"] in ("ADDED", "MODIFIED"):
                        self.cache.upsert(obj, event["type"])
            except ApiException as e:
                if e.status == 410:
                    logger.debug("Watch of %s expired, relisting", self.cache.kind)
                    continue
                logger.warning("Watch of %s failed: %s", self.cache.kind, e.reason)
                stop.wait(_WATCH_RETRY_DELAY)
            except Exception as e:
                logger.warning("Watch of %s failed: %s: %s", self.cache.kind, type(e).__name__, e)
                stop.wait(_WATCH_RETRY_DELAY)


def load_api_client(kubeconfig: str | Path | None = None) -> client.ApiClient:
    """Build an ApiClient from a kubeconfig file, or from the in-cluster config.

    Raises:
        IrrecoverableWiringError: If no usable configuration is found
    """
    configuration = client.Configuration()
    try:
        if kubeconfig:
            config.load_kube_config(config_file=str(kubeconfig), client_configuration=configuration)
        else:
            config.load_incluster_config(client_configuration=configuration)
    except (ConfigException, OSError) as e:
        source = kubeconfig or "in-cluster config"
        raise IrrecoverableWiringError(f"could not load Kubernetes client configuration from {source}: {e}") from e
    api_client = client.ApiClient(configuration)
    api_client.user_agent = OPERATOR_NAME
    return api_client
