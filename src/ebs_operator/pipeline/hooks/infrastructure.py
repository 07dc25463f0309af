"""Hooks driven by the cluster Infrastructure object.

All three read status.platformStatus.aws and configure the csi-driver
container. Missing platform status or an empty value means nothing to do.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ebs_operator.constants import DRIVER_CONTAINER
from ebs_operator.pipeline.guards import has_ec2_endpoint, has_region, has_resource_tags
from ebs_operator.pipeline.hook import hook
from ebs_operator.workload import set_env, set_flag

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context
    from ebs_operator.state import Infrastructure

logger = logging.getLogger(__name__)


def _infrastructure(ctx: Context) -> Infrastructure:
    infra = ctx.state.infrastructure
    assert infra is not None  # guaranteed by the guards
    return infra


def with_aws_region_guard(ctx: Context) -> bool:
    """Guard: Run if the cluster region is known."""
    return has_region(ctx)


@hook()
def with_aws_region(ctx: Context, params: dict[str, Any]) -> Context:
    """Set AWS_REGION on the driver container."""
    region = _infrastructure(ctx).region
    container = ctx.workload.find_container(DRIVER_CONTAINER)
    if container is not None:
        set_env(container, "AWS_REGION", region)
    return ctx


def with_custom_tags_guard(ctx: Context) -> bool:
    """Guard: Run if the cluster defines resource tags."""
    return has_resource_tags(ctx)


@hook()
def with_custom_tags(ctx: Context, params: dict[str, Any]) -> Context:
    """Pass user resource tags to the driver as --extra-tags=k1=v1,k2=v2.

    Tags keep the order they have in the Infrastructure status.
    """
    tags = ",".join(f"{tag.key}={tag.value}" for tag in _infrastructure(ctx).resource_tags)
    container = ctx.workload.find_container(DRIVER_CONTAINER)
    if container is not None:
        set_flag(container, "--extra-tags", tags)
        logger.debug("Added extra tags to %s: %s", DRIVER_CONTAINER, tags)
    return ctx


def with_custom_endpoint_guard(ctx: Context) -> bool:
    """Guard: Run if a custom ec2 endpoint is configured."""
    return has_ec2_endpoint(ctx)


@hook()
def with_custom_endpoint(ctx: Context, params: dict[str, Any]) -> Context:
    """Set AWS_EC2_ENDPOINT on the driver container."""
    endpoint = _infrastructure(ctx).endpoint("ec2")
    container = ctx.workload.find_container(DRIVER_CONTAINER)
    if container is not None:
        set_env(container, "AWS_EC2_ENDPOINT", endpoint)
    return ctx
