"""Context dataclass for pipeline execution.

Bundles the pipeline-private WorkloadSpec with the read-only inputs hooks
consult.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ebs_operator.state import ClusterState, OperatorSpec
from ebs_operator.workload import Manifest, WorkloadSpec


@dataclass
class Context:
    """Typed context for hook pipeline execution.

    Attributes:
        workload: Workload being mutated (owned by this pipeline run)
        state: Read-only cluster state snapshot
        operator_spec: Spec of the operator custom resource
    """

    workload: WorkloadSpec
    state: ClusterState = field(default_factory=ClusterState)
    operator_spec: OperatorSpec = field(default_factory=OperatorSpec)

    @classmethod
    def from_manifest(
        cls,
        manifest: Manifest,
        state: ClusterState | None = None,
        operator_spec: OperatorSpec | None = None,
    ) -> Context:
        """Create a Context over a deep copy of the base manifest."""
        return cls(
            workload=WorkloadSpec.from_manifest(manifest),
            state=state or ClusterState(),
            operator_spec=operator_spec or OperatorSpec(),
        )

    def to_manifest(self) -> Manifest:
        return self.workload.to_manifest()

    def fork(self) -> Context:
        """Copy the workload, sharing the read-only inputs."""
        return Context(workload=self.workload.copy(), state=self.state, operator_spec=self.operator_spec)
