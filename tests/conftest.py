"""Shared fixtures and fakes for ebs_operator tests."""

from typing import Any

import pytest

from ebs_operator.cache import ObjectCache
from ebs_operator.constants import CLUSTER_CSI_DRIVER_NAME
from ebs_operator.kube import CapabilityProbe, KindNotServedError, OperatorClient, ResourceApplier
from ebs_operator.manifests import AssetLoader

IMAGES = {
    "DRIVER_IMAGE": "quay.io/test/aws-ebs-csi-driver:latest",
    "PROVISIONER_IMAGE": "quay.io/test/csi-provisioner:latest",
    "ATTACHER_IMAGE": "quay.io/test/csi-attacher:latest",
    "RESIZER_IMAGE": "quay.io/test/csi-resizer:latest",
    "SNAPSHOTTER_IMAGE": "quay.io/test/csi-snapshotter:latest",
    "NODE_DRIVER_REGISTRAR_IMAGE": "quay.io/test/csi-node-driver-registrar:latest",
    "LIVENESS_PROBE_IMAGE": "quay.io/test/csi-livenessprobe:latest",
    "KUBE_RBAC_PROXY_IMAGE": "quay.io/test/kube-rbac-proxy:latest",
}


class FakeApplier(ResourceApplier):
    """In-memory ResourceApplier.

    Attributes:
        objects: Stored objects keyed by (kind, namespace, name)
        applied: Every object passed to apply, in order
        deleted: Every key passed to delete, in order
        unserved_kinds: Kinds for which apply raises KindNotServedError
        fail_with: Exception raised by every call when set
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.applied: list[dict[str, Any]] = []
        self.deleted: list[tuple[str, str, str]] = []
        self.unserved_kinds: set[str] = set()
        self.fail_with: Exception | None = None

    @staticmethod
    def key(kind: str, name: str, namespace: str | None) -> tuple[str, str, str]:
        return kind, namespace or "", name

    def apply(self, obj: dict[str, Any]) -> dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        if obj["kind"] in self.unserved_kinds:
            raise KindNotServedError(f"{obj['kind']} is not served")
        metadata = obj.get("metadata") or {}
        self.applied.append(obj)
        self.objects[self.key(obj["kind"], metadata["name"], metadata.get("namespace"))] = obj
        return obj

    def delete(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        key = self.key(kind, name, namespace)
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None


class FakeProbe(CapabilityProbe):
    """CapabilityProbe answering from a set of installed CRDs, or raising."""

    def __init__(self, installed: set[str] | None = None, error: Exception | None = None) -> None:
        self.installed = installed or set()
        self.error = error
        self.calls: list[str] = []

    def exists(self, name: str) -> bool:
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        return name in self.installed


class FakeOperatorClient(OperatorClient):
    """OperatorClient recording every patch."""

    def __init__(self) -> None:
        self.spec_patches: list[dict[str, Any]] = []
        self.status_patches: list[dict[str, Any]] = []

    def patch_spec(self, spec: dict[str, Any]) -> None:
        self.spec_patches.append(spec)

    def patch_status(self, status: dict[str, Any]) -> None:
        self.status_patches.append(status)


def config_map(namespace: str, name: str, data: dict[str, str] | None = None, **extra: Any) -> dict[str, Any]:
    """Build a ConfigMap object."""
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": data or {},
        **extra,
    }


def synced_cache(kind: str, namespace: str = "", objects: list[dict[str, Any]] | None = None) -> ObjectCache:
    """Build a cache that has completed its initial list."""
    cache = ObjectCache(kind, namespace)
    cache.replace(objects or [])
    return cache


def operator_cache(spec: dict[str, Any] | None = None, status: dict[str, Any] | None = None) -> ObjectCache:
    """Build a synced ClusterCSIDriver cache holding ebs.csi.aws.com."""
    obj: dict[str, Any] = {"metadata": {"name": CLUSTER_CSI_DRIVER_NAME}, "spec": spec or {}}
    if status is not None:
        obj["status"] = status
    return synced_cache("ClusterCSIDriver", "", [obj])


@pytest.fixture
def applier():
    """Create an empty in-memory applier."""
    return FakeApplier()


@pytest.fixture
def loader():
    """Create an asset loader with test images."""
    return AssetLoader({**IMAGES, "NAMESPACE": "openshift-cluster-csi-drivers"})


@pytest.fixture
def controller_manifest(loader):
    """Rendered base controller Deployment."""
    return loader.render("controller.yaml", {"LOG_LEVEL": "2", "CLUSTER_ID": "test-cluster"})


@pytest.fixture
def node_manifest(loader):
    """Rendered base node DaemonSet."""
    return loader.render("node.yaml", {"LOG_LEVEL": "2"})


@pytest.fixture(autouse=True)
def operator_env(monkeypatch):
    """Keep the caller's cluster settings out of OperatorConfig."""
    for name in ("NAMESPACE", "OPERATOR_NAMESPACE", "KUBECONFIG", "GUEST_KUBECONFIG", "HYPERSHIFT_IMAGE"):
        monkeypatch.delenv(name, raising=False)
