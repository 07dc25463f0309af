"""Workload mutation pipeline.

A pipeline is an ordered list of hooks applied to a fresh copy of a base
manifest on every reconciliation tick:

    Hook hᵢ = (gᵢ, fᵢ) where:
        gᵢ: Context → Bool    (guard)
        fᵢ: Context → Context (handler)

    apply(h, s) = if guard(s) then handler(s) else s

Execution is fail-fast: the first ConfigurationError aborts the run.
"""

from ebs_operator.pipeline.context import Context
from ebs_operator.pipeline.executor import PipelineExecutor
from ebs_operator.pipeline.hook import HookSpec, get_hook_spec, hook
from ebs_operator.pipeline.topology import Topology, controller_pipeline, node_pipeline

__all__ = [
    "Context",
    "HookSpec",
    "hook",
    "get_hook_spec",
    "PipelineExecutor",
    "Topology",
    "controller_pipeline",
    "node_pipeline",
]
