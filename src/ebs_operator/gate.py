"""Conditional installation of resources.

A ResourceGate decides every tick whether a set of assets should be present,
based on predicates that take no arguments. It never looks at the
WorkloadSpec.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from ebs_operator.errors import ResourceSyncError
from ebs_operator.kube import CapabilityProbe, KindNotServedError, ResourceApplier
from ebs_operator.manifests import AssetLoader

logger = logging.getLogger(__name__)

Predicate = Callable[[], bool]


class GateDecision(Enum):
    INSTALL = "install"
    REMOVE = "remove"
    NOOP = "noop"


def never() -> bool:
    return False


def crd_exists_predicate(probe: CapabilityProbe, crd_name: str) -> Predicate:
    """Predicate that holds while the named CRD is installed."""

    def predicate() -> bool:
        return probe.exists(crd_name)

    predicate.__name__ = f"crd_exists({crd_name})"
    return predicate


class ResourceGate:
    """Install/remove decision for a set of assets.

    Attributes:
        name: Gate name
        assets: Asset paths guarded by this gate
        install_predicate: Holds when the assets should exist
        delete_predicate: Holds when the assets must be removed; wins over install
    """

    def __init__(
        self,
        name: str,
        assets: list[str],
        install_predicate: Predicate,
        delete_predicate: Predicate = never,
    ) -> None:
        self.name = name
        self.assets = list(assets)
        self.install_predicate = install_predicate
        self.delete_predicate = delete_predicate

    def _holds(self, predicate: Predicate) -> bool:
        # A predicate that cannot be evaluated does not hold
        try:
            return bool(predicate())
        except Exception as e:
            logger.warning("Gate %s: predicate %s failed: %s", self.name, getattr(predicate, "__name__", predicate), e)
            return False

    def evaluate(self) -> GateDecision:
        if self._holds(self.delete_predicate):
            return GateDecision.REMOVE
        if self._holds(self.install_predicate):
            return GateDecision.INSTALL
        return GateDecision.NOOP


class ConditionalResourceController:
    """Applies or deletes the assets of a gate according to its decision."""

    def __init__(self, name: str, gate: ResourceGate, loader: AssetLoader, applier: ResourceApplier) -> None:
        self.name = name
        self.gate = gate
        self.loader = loader
        self.applier = applier

    def sync(self) -> GateDecision:
        decision = self.gate.evaluate()
        logger.debug("Gate %s decided %s", self.gate.name, decision.value)
        if decision is GateDecision.NOOP:
            return decision

        failures = []
        for asset in self.gate.assets:
            manifest = self.loader.render(asset)
            try:
                if decision is GateDecision.INSTALL:
                    self.applier.apply(manifest)
                else:
                    metadata = manifest.get("metadata") or {}
                    self.applier.delete(
                        manifest["apiVersion"], manifest["kind"], metadata["name"], metadata.get("namespace")
                    )
            except KindNotServedError as e:
                if decision is GateDecision.INSTALL:
                    failures.append(f"{asset}: {e}")
            except Exception as e:
                failures.append(f"{asset}: {e}")

        if failures:
            raise ResourceSyncError(self.name, failures)
        return decision
