"""Shared guard functions for pipeline hooks.

Guards decide whether the optional data a hook consumes is present. A guard
returning False is a silent no-op, never an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context


def has_aws_platform_status(ctx: Context) -> bool:
    """Check if AWS platform status is cached.

    Args:
        ctx: Pipeline context

    Returns:
        True if Infrastructure is cached and has status.platformStatus.aws
    """
    infra = ctx.state.infrastructure
    return infra is not None and infra.has_aws_status


def has_region(ctx: Context) -> bool:
    return has_aws_platform_status(ctx) and bool(ctx.state.infrastructure.region)  # type: ignore[union-attr]


def has_resource_tags(ctx: Context) -> bool:
    return has_aws_platform_status(ctx) and bool(ctx.state.infrastructure.resource_tags)  # type: ignore[union-attr]


def has_ec2_endpoint(ctx: Context) -> bool:
    return has_aws_platform_status(ctx) and bool(ctx.state.infrastructure.endpoint("ec2"))  # type: ignore[union-attr]


def has_node_data(ctx: Context) -> bool:
    """Check if the node cache has synced."""
    return ctx.state.nodes is not None


def has_observed_proxy(ctx: Context) -> bool:
    """Check if the operator observed a cluster-wide proxy."""
    return bool(ctx.operator_spec.observed_proxy())
