"""Controllers for the driver workloads (controller Deployment, node DaemonSet).

Each tick renders the base manifest, runs it through the hook pipeline
against a fresh ClusterState snapshot and applies the result. Nothing is
applied until every cache the snapshot reads from has synced, and a
ConfigurationError from the pipeline aborts the tick before anything is
applied.
"""

from __future__ import annotations

import logging
from typing import Any

from ebs_operator.errors import ConfigurationError
from ebs_operator.kube import ResourceApplier
from ebs_operator.manifests import AssetLoader, log_level_verbosity
from ebs_operator.pipeline import PipelineExecutor
from ebs_operator.snapshot import StateSources
from ebs_operator.state import ClusterState, OperatorSpec

logger = logging.getLogger(__name__)

# Placeholders that must never reach the cluster unresolved
REQUIRED_PLACEHOLDERS = frozenset({"CLUSTER_ID"})


def render_workload(
    loader: AssetLoader,
    asset: str,
    pipeline: PipelineExecutor,
    state: ClusterState,
    operator_spec: OperatorSpec,
) -> dict[str, Any]:
    """Render a base manifest and run it through the pipeline.

    Raises:
        ConfigurationError: If the cluster ID is unknown, or a hook found a
            required precondition missing
    """
    extra = {"LOG_LEVEL": log_level_verbosity(operator_spec.log_level)}
    if state.infrastructure is not None and state.infrastructure.infrastructure_name:
        extra["CLUSTER_ID"] = state.infrastructure.infrastructure_name

    missing = loader.unresolved(asset, extra) & REQUIRED_PLACEHOLDERS
    if missing:
        raise ConfigurationError(
            f"cannot render {asset}: no value for {', '.join(sorted(missing))} "
            "(Infrastructure cluster has no status.infrastructureName)"
        )

    base = loader.render(asset, extra)
    return pipeline.finalize(operator_spec, base, state)


class WorkloadController:
    """Renders, finalizes and applies one workload.

    Attributes:
        name: Controller name
        asset: Base manifest asset path
        pipeline: Hook pipeline producing the final manifest
        sources: Caches the ClusterState snapshot is read from
    """

    def __init__(
        self,
        name: str,
        asset: str,
        loader: AssetLoader,
        pipeline: PipelineExecutor,
        applier: ResourceApplier,
        sources: StateSources,
    ) -> None:
        self.name = name
        self.asset = asset
        self.loader = loader
        self.pipeline = pipeline
        self.applier = applier
        self.sources = sources

    def desired(self) -> dict[str, Any]:
        """Compute the final manifest from the current caches."""
        return render_workload(
            self.loader,
            self.asset,
            self.pipeline,
            self.sources.snapshot(),
            self.sources.operator_spec(),
        )

    def sync(self) -> dict[str, Any]:
        """Apply the final manifest.

        Raises:
            TransientLookupError: While any source cache has not synced
            ConfigurationError: If the manifest cannot be finalized
        """
        self.sources.wait_for_sync()
        manifest = self.desired()
        applied = self.applier.apply(manifest)
        metadata = manifest.get("metadata") or {}
        logger.debug(
            "%s applied %s %s/%s", self.name, manifest.get("kind"), metadata.get("namespace"), metadata.get("name")
        )
        return applied
