"""Topology adapter.

Selects the fixed hook list for the controller Deployment from the topology,
which is resolved once at startup and never re-evaluated.
"""

from __future__ import annotations

from enum import Enum

from ebs_operator.constants import (
    CLOUD_CONFIG_NAME,
    DEFAULT_NAMESPACE,
    SECRET_NAME,
    TRUSTED_CA_CONFIG_MAP,
)
from ebs_operator.pipeline.executor import PipelineExecutor
from ebs_operator.pipeline.hook import HookSpec, get_hook_spec
from ebs_operator.pipeline.hooks import (
    with_aws_region,
    with_custom_ca_bundle,
    with_custom_endpoint,
    with_custom_tags,
    with_hosted_replicas,
    with_hypershift_deployment,
    with_namespace,
    with_node_replicas,
    with_observed_proxy,
    with_secret_hash_annotation,
    with_trusted_ca_bundle,
)


class Topology(Enum):
    """Deployment mode of the operator."""

    STANDALONE = "standalone"
    """Operator and driver run in the same cluster"""

    HOSTED = "hosted"
    """Hosted control plane: controller in the management cluster, nodes in another"""

    @classmethod
    def from_guest_kubeconfig(cls, guest_kubeconfig: str | None) -> Topology:
        return cls.HOSTED if guest_kubeconfig else cls.STANDALONE

    @property
    def is_hosted(self) -> bool:
        return self is Topology.HOSTED


def controller_hooks(
    topology: Topology,
    namespace: str,
    hypershift_image: str = "",
    guest_namespace: str = DEFAULT_NAMESPACE,
) -> list[HookSpec]:
    """Build the ordered hook list for the controller Deployment.

    Args:
        topology: Deployment mode
        namespace: Namespace the Deployment runs in
        hypershift_image: Token minter image (hosted only)
        guest_namespace: Driver namespace in the workload cluster

    Returns:
        Hook specs with params bound, in execution order
    """
    if topology.is_hosted:
        head = [
            get_hook_spec(with_hypershift_deployment, image=hypershift_image, guest_namespace=guest_namespace),
            get_hook_spec(with_hosted_replicas, replicas=1),
        ]
    else:
        head = [get_hook_spec(with_node_replicas)]

    tail = [
        get_hook_spec(with_namespace, namespace=namespace),
        get_hook_spec(with_secret_hash_annotation, namespace=namespace, secret_name=SECRET_NAME),
        get_hook_spec(with_observed_proxy),
    ]
    # The custom CA bundle comes from the mirrored cloud config, standalone only
    if not topology.is_hosted:
        tail.append(get_hook_spec(with_custom_ca_bundle, namespace=namespace, config_map=CLOUD_CONFIG_NAME))
    tail += [
        get_hook_spec(with_aws_region),
        get_hook_spec(with_custom_tags),
        get_hook_spec(with_custom_endpoint),
        get_hook_spec(with_trusted_ca_bundle, namespace=namespace, config_map=TRUSTED_CA_CONFIG_MAP),
    ]
    return head + tail


def node_hooks(namespace: str) -> list[HookSpec]:
    """Build the ordered hook list for the node DaemonSet."""
    return [
        get_hook_spec(with_observed_proxy),
        get_hook_spec(with_trusted_ca_bundle, namespace=namespace, config_map=TRUSTED_CA_CONFIG_MAP),
    ]


def controller_pipeline(
    topology: Topology,
    namespace: str,
    hypershift_image: str = "",
    guest_namespace: str = DEFAULT_NAMESPACE,
) -> PipelineExecutor:
    return PipelineExecutor(
        controller_hooks(topology, namespace, hypershift_image, guest_namespace),
        name=f"controller-{topology.value}",
    )


def node_pipeline(namespace: str) -> PipelineExecutor:
    return PipelineExecutor(node_hooks(namespace), name="node")
