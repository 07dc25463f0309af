"""Hosted control plane hooks.

In a hosted control plane the controller Deployment runs in the management
cluster while the CSI sidecars talk to the workload cluster through a
kubeconfig mounted from a secret.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ebs_operator.constants import (
    BOUND_SA_TOKEN_VOLUME,
    DEFAULT_NAMESPACE,
    HOSTED_KUBECONFIG_DIR,
    HOSTED_KUBECONFIG_PATH,
    HOSTED_KUBECONFIG_SECRET,
    HOSTED_KUBECONFIG_SIDECARS,
    HOSTED_KUBECONFIG_VOLUME,
    HOSTED_REMOVED_SIDECARS,
    HYPERSHIFT_PRIORITY_CLASS,
    METRICS_SERVING_CERT_VOLUME,
)
from ebs_operator.pipeline.hook import hook
from ebs_operator.workload import add_arg, add_volume_mount, set_env

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context

logger = logging.getLogger(__name__)

TOKEN_MINTER_CONTAINER = "token-minter"
TOKEN_DIR = "/var/run/secrets/openshift/serviceaccount"
CONTROLLER_SERVICE_ACCOUNT = "aws-ebs-csi-driver-controller-sa"


def token_minter_container(image: str, namespace: str = DEFAULT_NAMESPACE) -> dict[str, Any]:
    """Build the token minter sidecar that projects a workload-cluster token."""
    return {
        "name": TOKEN_MINTER_CONTAINER,
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "command": ["/usr/bin/control-plane-operator", "token-minter"],
        "args": [
            f"--service-account-namespace={namespace}",
            f"--service-account-name={CONTROLLER_SERVICE_ACCOUNT}",
            "--token-audience=openshift",
            f"--token-file={TOKEN_DIR}/token",
            f"--kubeconfig={HOSTED_KUBECONFIG_PATH}",
        ],
        "resources": {"requests": {"cpu": "10m", "memory": "10Mi"}},
        "volumeMounts": [
            {"name": BOUND_SA_TOKEN_VOLUME, "mountPath": TOKEN_DIR},
            {"name": HOSTED_KUBECONFIG_VOLUME, "mountPath": HOSTED_KUBECONFIG_DIR, "readOnly": True},
        ],
    }


@hook()
def with_hypershift_deployment(ctx: Context, params: dict[str, Any]) -> Context:
    """Adapt the controller Deployment to run in a hosted control plane.

    Args:
        ctx: Pipeline context
        params: 'image' (token minter image, from HYPERSHIFT_IMAGE) and
            optionally 'guest_namespace'

    Returns:
        Modified context
    """
    workload = ctx.workload
    image = params.get("image", "")
    guest_namespace = params.get("guest_namespace", DEFAULT_NAMESPACE)

    workload.priority_class_name = HYPERSHIFT_PRIORITY_CLASS

    # FIXME: use a ServiceAccount from the workload cluster instead of the admin kubeconfig
    workload.add_volume(
        {
            "name": HOSTED_KUBECONFIG_VOLUME,
            "secret": {"secretName": HOSTED_KUBECONFIG_SECRET},
        }
    )

    # Token projection is not available off-cluster
    workload.replace_volume_source(BOUND_SA_TOKEN_VOLUME, {"emptyDir": {"medium": "Memory"}})

    workload.remove_first_volume(METRICS_SERVING_CERT_VOLUME)

    removed = workload.remove_containers(HOSTED_REMOVED_SIDECARS)
    if removed:
        logger.debug("Removed sidecars not supported in hosted control plane: %s", ", ".join(removed))

    for container in workload.containers:
        if container.get("name") not in HOSTED_KUBECONFIG_SIDECARS:
            continue
        add_arg(container, "--kubeconfig=$(KUBECONFIG)")
        set_env(container, "KUBECONFIG", HOSTED_KUBECONFIG_PATH)
        add_volume_mount(container, HOSTED_KUBECONFIG_VOLUME, HOSTED_KUBECONFIG_DIR, read_only=True)

    workload.add_container(token_minter_container(image, guest_namespace))

    logger.info(
        "Adapted %s for hosted control plane",
        workload.name,
        extra={"event": "hypershift_adapted", "workload": workload.name},
    )
    return ctx


@hook()
def with_hosted_replicas(ctx: Context, params: dict[str, Any]) -> Context:
    """Run a single controller replica in a hosted control plane.

    TODO: take the replica count from HostedControlPlane.spec.availabilityPolicy
    once the operator can read it.
    """
    ctx.workload.replicas = params.get("replicas", 1)
    return ctx
