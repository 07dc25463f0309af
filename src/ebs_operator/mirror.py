"""One-directional ConfigMap mirroring between namespaces."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ebs_operator.cache import ObjectCache
from ebs_operator.errors import ConfigurationError, ResourceSyncError, TransientLookupError
from ebs_operator.kube import ResourceApplier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceLocation:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ConfigMirrorEntry:
    source: ResourceLocation
    destination: ResourceLocation


def mirrored_config_map(source: Mapping[str, Any], destination: ResourceLocation) -> dict[str, Any]:
    """Build the destination ConfigMap carrying the source content."""
    manifest: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": destination.name, "namespace": destination.namespace},
        "data": dict(source.get("data") or {}),
    }
    if source.get("binaryData"):
        manifest["binaryData"] = dict(source["binaryData"])
    return manifest


class ConfigMirror:
    """Copies source ConfigMaps to their destinations and deletes stale copies.

    Args:
        name: Controller name
        entries: Source -> destination pairs
        sources: ConfigMap caches keyed by the namespace they watch
        applier: Applier used to write destinations
    """

    def __init__(
        self,
        name: str,
        entries: list[ConfigMirrorEntry],
        sources: Mapping[str, ObjectCache],
        applier: ResourceApplier,
    ) -> None:
        missing = sorted({e.source.namespace for e in entries} - set(sources))
        if missing:
            raise ConfigurationError(f"{name}: no ConfigMap cache for namespace(s) {', '.join(missing)}")

        self.name = name
        self.entries = list(entries)
        self.sources = dict(sources)
        self.applier = applier

    def handles(self, event_type: str, obj: Mapping[str, Any]) -> bool:
        """Check whether a cache event concerns one of the mirrored sources."""
        if event_type == "SYNCED":
            return True
        metadata = obj.get("metadata") or {}
        location = ResourceLocation(metadata.get("namespace", ""), metadata.get("name", ""))
        return any(e.source == location for e in self.entries)

    def sync(self) -> None:
        failures = []
        for entry in self.entries:
            try:
                source = self.sources[entry.source.namespace].get(entry.source.name)
            except TransientLookupError as e:
                logger.debug("Skipping mirror of %s: %s", entry.source, e)
                continue

            try:
                if source is None:
                    if self.applier.delete("v1", "ConfigMap", entry.destination.name, entry.destination.namespace):
                        logger.info(
                            "Source %s is gone, deleted %s",
                            entry.source,
                            entry.destination,
                            extra={"event": "mirror_deleted"},
                        )
                else:
                    self.applier.apply(mirrored_config_map(source, entry.destination))
                    logger.debug("Mirrored %s to %s", entry.source, entry.destination)
            except Exception as e:
                failures.append(f"{entry.destination}: {e}")

        if failures:
            raise ResourceSyncError(self.name, failures)
