"""Namespace override hook."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ebs_operator.pipeline.hook import hook

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context


@hook()
def with_namespace(ctx: Context, params: dict[str, Any]) -> Context:
    """Deploy the workload into the operator namespace."""
    namespace = params.get("namespace")
    if namespace:
        ctx.workload.namespace = namespace
    return ctx
