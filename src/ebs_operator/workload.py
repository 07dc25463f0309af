"""In-memory view over a Deployment or DaemonSet manifest.

WorkloadSpec owns a deep copy of the manifest it was built from, so hooks can
mutate it freely without touching the base template. Mutators are
check-before-append: re-applying a hook to the same base produces the same
result.
"""

from __future__ import annotations

import copy
from typing import Any

from ebs_operator.errors import MissingContainerError

Manifest = dict[str, Any]


class WorkloadSpec:
    """Mutable workload built from a base manifest.

    Attributes:
        manifest: The owned manifest dict
    """

    def __init__(self, manifest: Manifest) -> None:
        self.manifest: Manifest = manifest
        self._containers_by_name: dict[str, Manifest] = {}
        self._reindex()

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> WorkloadSpec:
        """Create a WorkloadSpec from a deep copy of the given manifest."""
        return cls(copy.deepcopy(manifest))

    def to_manifest(self) -> Manifest:
        """Return a deep copy of the current manifest."""
        return copy.deepcopy(self.manifest)

    def copy(self) -> WorkloadSpec:
        return WorkloadSpec.from_manifest(self.manifest)

    # ------------------------------------------------------------------
    # Top-level fields
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self.manifest.get("kind", "")

    @property
    def name(self) -> str:
        return self._metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self._metadata.get("namespace", "")

    @namespace.setter
    def namespace(self, value: str) -> None:
        self._metadata["namespace"] = value

    @property
    def replicas(self) -> int | None:
        return self._spec.get("replicas")

    @replicas.setter
    def replicas(self, value: int) -> None:
        self._spec["replicas"] = value

    @property
    def priority_class_name(self) -> str:
        return self.pod_spec.get("priorityClassName", "")

    @priority_class_name.setter
    def priority_class_name(self, value: str) -> None:
        self.pod_spec["priorityClassName"] = value

    @property
    def node_selector(self) -> dict[str, str]:
        return dict(self.pod_spec.get("nodeSelector") or {})

    @property
    def pod_annotations(self) -> dict[str, str]:
        template_meta = self._template.setdefault("metadata", {})
        annotations = template_meta.get("annotations")
        if annotations is None:
            annotations = template_meta["annotations"] = {}
        return annotations

    def set_pod_annotation(self, key: str, value: str) -> None:
        self.pod_annotations[key] = value

    @property
    def pod_spec(self) -> Manifest:
        return self._template.setdefault("spec", {})

    @property
    def _metadata(self) -> Manifest:
        return self.manifest.setdefault("metadata", {})

    @property
    def _spec(self) -> Manifest:
        return self.manifest.setdefault("spec", {})

    @property
    def _template(self) -> Manifest:
        return self._spec.setdefault("template", {})

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    @property
    def containers(self) -> list[Manifest]:
        containers = self.pod_spec.get("containers")
        if containers is None:
            containers = self.pod_spec["containers"] = []
        return containers

    @property
    def container_names(self) -> list[str]:
        return [c.get("name", "") for c in self.containers]

    def _reindex(self) -> None:
        self._containers_by_name = {}
        for container in self.containers:
            # First match wins for duplicate names
            self._containers_by_name.setdefault(container.get("name", ""), container)

    def find_container(self, name: str) -> Manifest | None:
        """Get a container by name, or None if it is not present."""
        return self._containers_by_name.get(name)

    def require_container(self, name: str, purpose: str) -> Manifest:
        """Get a container by name.

        Args:
            name: Container name
            purpose: What the caller was trying to do, used in the error message

        Raises:
            MissingContainerError: If the container is absent
        """
        container = self.find_container(name)
        if container is None:
            raise MissingContainerError(name, purpose)
        return container

    def remove_containers(self, names: set[str] | frozenset[str]) -> list[str]:
        """Remove every container whose name is in names.

        Returns:
            Names of removed containers, in their original order
        """
        kept = [c for c in self.containers if c.get("name") not in names]
        removed = [c.get("name", "") for c in self.containers if c.get("name") in names]
        self.pod_spec["containers"] = kept
        self._reindex()
        return removed

    def add_container(self, container: Manifest) -> None:
        """Add a container, replacing any existing container with the same name."""
        name = container.get("name")
        for i, existing in enumerate(self.containers):
            if existing.get("name") == name:
                self.containers[i] = container
                break
        else:
            self.containers.append(container)
        self._reindex()

    # ------------------------------------------------------------------
    # Volumes
    # ------------------------------------------------------------------

    @property
    def volumes(self) -> list[Manifest]:
        volumes = self.pod_spec.get("volumes")
        if volumes is None:
            volumes = self.pod_spec["volumes"] = []
        return volumes

    @property
    def volume_names(self) -> list[str]:
        return [v.get("name", "") for v in self.volumes]

    def find_volume(self, name: str) -> Manifest | None:
        for volume in self.volumes:
            if volume.get("name") == name:
                return volume
        return None

    def add_volume(self, volume: Manifest) -> None:
        """Add a volume, replacing any existing volume with the same name."""
        name = volume.get("name")
        for i, existing in enumerate(self.volumes):
            if existing.get("name") == name:
                self.volumes[i] = volume
                return
        self.volumes.append(volume)

    def replace_volume_source(self, name: str, source: Manifest) -> bool:
        """Replace the backing source of every volume called name.

        Returns:
            True if at least one volume was changed
        """
        changed = False
        for i, volume in enumerate(self.volumes):
            if volume.get("name") != name:
                continue
            self.volumes[i] = {"name": name, **copy.deepcopy(source)}
            changed = True
        return changed

    def remove_first_volume(self, name: str) -> bool:
        """Remove the first volume called name, if any."""
        for i, volume in enumerate(self.volumes):
            if volume.get("name") == name:
                del self.volumes[i]
                return True
        return False


# ----------------------------------------------------------------------
# Container helpers
# ----------------------------------------------------------------------


def set_env(container: Manifest, name: str, value: str) -> None:
    """Set an env var on a container, replacing an existing var of that name."""
    env = container.setdefault("env", [])
    for i, var in enumerate(env):
        if var.get("name") == name:
            env[i] = {"name": name, "value": value}
            return
    env.append({"name": name, "value": value})


def get_env(container: Manifest, name: str) -> str | None:
    for var in container.get("env") or []:
        if var.get("name") == name:
            return var.get("value")
    return None


def add_arg(container: Manifest, arg: str) -> None:
    """Append an argument unless it is already present."""
    args = container.setdefault("args", [])
    if arg not in args:
        args.append(arg)


def set_flag(container: Manifest, flag: str, value: str) -> None:
    """Set a `--flag=value` argument, replacing any previous value of the flag."""
    args = container.setdefault("args", [])
    prefix = f"{flag}="
    arg = f"{prefix}{value}"
    for i, existing in enumerate(args):
        if existing.startswith(prefix):
            args[i] = arg
            return
    args.append(arg)


def add_volume_mount(container: Manifest, name: str, mount_path: str, read_only: bool = False) -> None:
    """Add a volume mount, replacing an existing mount of the same volume."""
    mount: Manifest = {"name": name, "mountPath": mount_path}
    if read_only:
        mount["readOnly"] = True
    mounts = container.setdefault("volumeMounts", [])
    for i, existing in enumerate(mounts):
        if existing.get("name") == name:
            mounts[i] = mount
            return
    mounts.append(mount)
