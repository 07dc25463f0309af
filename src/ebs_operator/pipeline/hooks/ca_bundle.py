"""CA bundle hooks.

with_custom_ca_bundle points the AWS SDK at a custom CA bundle for talking to
the AWS API. with_trusted_ca_bundle mounts the cluster trusted CA bundle into
the system trust store of the driver.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ebs_operator.constants import CA_BUNDLE_KEY, DRIVER_CONTAINER, TRUSTED_CA_BUNDLE_KEY
from ebs_operator.pipeline.hook import hook
from ebs_operator.state import hash_data
from ebs_operator.workload import add_volume_mount, set_env

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context

logger = logging.getLogger(__name__)

CA_BUNDLE_VOLUME = "ca-bundle"
CA_BUNDLE_DIR = "/etc/ca"

TRUSTED_CA_VOLUME = "non-standard-root-system-trust-ca-bundle"
TRUSTED_CA_DIR = "/etc/pki/ca-trust/extracted/pem"
TRUSTED_CA_FILE = "tls-ca-bundle.pem"
TRUSTED_CA_ANNOTATION = "operator.openshift.io/trusted-ca-bundle"


@hook()
def with_custom_ca_bundle(ctx: Context, params: dict[str, Any]) -> Context:
    """Use a custom CA bundle for AWS API calls when one is configured.

    Args:
        ctx: Pipeline context
        params: Must contain 'namespace' and 'config_map' (the ConfigMap that
            may hold ca-bundle.pem)

    Returns:
        Modified context, unchanged if no custom bundle is configured

    Raises:
        MissingContainerError: If a bundle is configured but csi-driver is absent
    """
    namespace = params["namespace"]
    config_map = params["config_map"]

    data = ctx.state.config_map(namespace, config_map)
    if data is None or CA_BUNDLE_KEY not in data:
        return ctx

    workload = ctx.workload
    container = workload.require_container(DRIVER_CONTAINER, "use custom CA bundle")

    workload.add_volume({"name": CA_BUNDLE_VOLUME, "configMap": {"name": config_map}})
    set_env(container, "AWS_CA_BUNDLE", f"{CA_BUNDLE_DIR}/{CA_BUNDLE_KEY}")
    add_volume_mount(container, CA_BUNDLE_VOLUME, CA_BUNDLE_DIR, read_only=True)

    logger.info(
        "Using custom CA bundle from ConfigMap %s/%s",
        namespace,
        config_map,
        extra={"event": "custom_ca_bundle_injected"},
    )
    return ctx


@hook()
def with_trusted_ca_bundle(ctx: Context, params: dict[str, Any]) -> Context:
    """Mount the cluster trusted CA bundle into the driver trust store.

    Args:
        ctx: Pipeline context
        params: Must contain 'namespace' and 'config_map'

    Returns:
        Modified context, unchanged until the bundle has been injected into
        the ConfigMap
    """
    namespace = params["namespace"]
    config_map = params["config_map"]

    data = ctx.state.config_map(namespace, config_map)
    if data is None or not data.get(TRUSTED_CA_BUNDLE_KEY):
        return ctx

    workload = ctx.workload
    container = workload.require_container(DRIVER_CONTAINER, "use trusted CA bundle")

    workload.add_volume(
        {
            "name": TRUSTED_CA_VOLUME,
            "configMap": {
                "name": config_map,
                "items": [{"key": TRUSTED_CA_BUNDLE_KEY, "path": TRUSTED_CA_FILE}],
            },
        }
    )
    add_volume_mount(container, TRUSTED_CA_VOLUME, TRUSTED_CA_DIR, read_only=True)
    # Roll out the pods when the bundle content changes
    workload.set_pod_annotation(TRUSTED_CA_ANNOTATION, hash_data({TRUSTED_CA_BUNDLE_KEY: data[TRUSTED_CA_BUNDLE_KEY]}))
    return ctx
