"""Replica count hook for standalone clusters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ebs_operator.pipeline.guards import has_node_data
from ebs_operator.pipeline.hook import hook

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context

logger = logging.getLogger(__name__)


def with_node_replicas_guard(ctx: Context) -> bool:
    """Guard: Run once the node cache has synced."""
    return has_node_data(ctx)


@hook()
def with_node_replicas(ctx: Context, params: dict[str, Any]) -> Context:
    """Run two controller replicas when more than one node can host them.

    Nodes are matched against the pod template's nodeSelector.
    """
    selector = ctx.workload.node_selector
    count = ctx.state.count_nodes(selector) or 0
    replicas = 2 if count > 1 else 1
    ctx.workload.replicas = replicas
    logger.debug("%d node(s) match %s, using %d replica(s)", count, selector, replicas)
    return ctx
