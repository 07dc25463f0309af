"""Assembly of caches, controllers and loops into a runnable operator.

The management plane is the cluster the operator runs in. The workload plane
is the cluster the driver nodes run in: the same cluster in standalone
topology, the guest cluster in hosted topology. The operator resource
(ClusterCSIDriver) and the cluster-wide configuration live in the workload
plane.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kubernetes import client
from kubernetes.dynamic import DynamicClient

from ebs_operator.cache import ObjectCache
from ebs_operator.config import OperatorConfig
from ebs_operator.constants import (
    CLOUD_CONFIG_NAME,
    CLOUD_CONFIG_NAMESPACE,
    CLUSTER_CSI_DRIVER_RESOURCE,
    INFRASTRUCTURE_RESOURCE,
    PROXY_RESOURCE,
    VOLUME_SNAPSHOT_CLASS_CRD,
)
from ebs_operator.controllers import WorkloadController
from ebs_operator.errors import IrrecoverableWiringError
from ebs_operator.gate import ConditionalResourceController, ResourceGate, crd_exists_predicate
from ebs_operator.kube import (
    CapabilityProbe,
    CrdCapabilityProbe,
    KubeInformer,
    KubeOperatorClient,
    KubeResourceApplier,
    OperatorClient,
    ResourceApplier,
    load_api_client,
)
from ebs_operator.loop import ControlLoop
from ebs_operator.management import LogLevelController, ManagementStateController, is_managed
from ebs_operator.manifests import AssetLoader
from ebs_operator.mirror import ConfigMirror, ConfigMirrorEntry, ResourceLocation
from ebs_operator.observer import ProxyConfigObserver
from ebs_operator.orchestrator import Domain, Orchestrator
from ebs_operator.pipeline import PipelineExecutor, Topology, controller_pipeline, node_pipeline
from ebs_operator.snapshot import StateSources
from ebs_operator.static import StaticResourceController
from ebs_operator.status import OperatorStatus, StatusController

logger = logging.getLogger(__name__)

MANAGEMENT_STATIC_ASSETS = [
    "controller_sa.yaml",
    "controller_pdb.yaml",
    "cabundle_cm.yaml",
]

# Standalone only: the controller runs next to its RBAC and metrics service
MANAGEMENT_RBAC_ASSETS = [
    "rbac/attacher_role.yaml",
    "rbac/attacher_binding.yaml",
    "rbac/provisioner_role.yaml",
    "rbac/provisioner_binding.yaml",
    "rbac/resizer_role.yaml",
    "rbac/resizer_binding.yaml",
    "rbac/snapshotter_role.yaml",
    "rbac/snapshotter_binding.yaml",
    "service.yaml",
    "rbac/prometheus_role.yaml",
    "rbac/prometheus_rolebinding.yaml",
    "rbac/kube_rbac_proxy_role.yaml",
    "rbac/kube_rbac_proxy_binding.yaml",
]

SERVICE_MONITOR_ASSETS = ["servicemonitor.yaml"]

WORKLOAD_STATIC_ASSETS = [
    "storageclass_gp2.yaml",
    "storageclass_gp3.yaml",
    "csidriver.yaml",
    "node_sa.yaml",
    "rbac/privileged_role.yaml",
    "rbac/node_privileged_binding.yaml",
]

VOLUME_SNAPSHOT_CLASS_ASSETS = ["volumesnapshotclass.yaml"]


@dataclass
class ClusterClients:
    """Collaborators bound to one cluster.

    The typed APIs are optional: without them no informer is started and the
    caches stay unsynced (useful in tests). Without an operator client the
    status and config observer controllers are not wired.
    """

    applier: ResourceApplier
    probe: CapabilityProbe
    core_api: client.CoreV1Api | None = None
    custom_api: client.CustomObjectsApi | None = None
    operator_client: OperatorClient | None = None

    @classmethod
    def connect(cls, kubeconfig: str | Path | None = None) -> ClusterClients:
        """Connect to a cluster.

        Raises:
            IrrecoverableWiringError: If the cluster cannot be reached or configured
        """
        api_client = load_api_client(kubeconfig)
        try:
            dynamic_client = DynamicClient(api_client)
        except Exception as e:
            source = kubeconfig or "in-cluster config"
            raise IrrecoverableWiringError(f"could not create a dynamic client for {source}: {e}") from e
        custom_api = client.CustomObjectsApi(api_client)
        return cls(
            applier=KubeResourceApplier(dynamic_client),
            probe=CrdCapabilityProbe(client.ApiextensionsV1Api(api_client)),
            core_api=client.CoreV1Api(api_client),
            custom_api=custom_api,
            operator_client=KubeOperatorClient(custom_api),
        )


@dataclass
class Operator:
    """A fully wired operator, ready to run."""

    config: OperatorConfig
    topology: Topology
    orchestrator: Orchestrator
    status: OperatorStatus
    pipelines: dict[str, PipelineExecutor] = field(default_factory=dict)
    caches: dict[str, ObjectCache] = field(default_factory=dict)


class _Informers:
    """Creates caches and, when the cluster API is available, their informers."""

    def __init__(self, clients: ClusterClients) -> None:
        self.clients = clients
        self.informers: list[KubeInformer] = []

    def _watch(self, cache: ObjectCache, list_fn: Callable[..., Any] | None, **kwargs: Any) -> ObjectCache:
        if list_fn is not None:
            self.informers.append(KubeInformer(cache, list_fn, **kwargs))
        return cache

    def config_maps(self, namespace: str) -> ObjectCache:
        core = self.clients.core_api
        fn = core.list_namespaced_config_map if core is not None else None
        return self._watch(ObjectCache("ConfigMap", namespace), fn, namespace=namespace)

    def secrets(self, namespace: str) -> ObjectCache:
        core = self.clients.core_api
        fn = core.list_namespaced_secret if core is not None else None
        return self._watch(ObjectCache("Secret", namespace), fn, namespace=namespace)

    def nodes(self) -> ObjectCache:
        core = self.clients.core_api
        return self._watch(ObjectCache("Node"), core.list_node if core is not None else None)

    def custom(self, kind: str, resource: dict[str, str]) -> ObjectCache:
        custom = self.clients.custom_api
        fn = custom.list_cluster_custom_object if custom is not None else None
        return self._watch(ObjectCache(kind), fn, **resource)


def _trigger_on(
    loop: ControlLoop,
    caches: list[ObjectCache],
    accept: Callable[[str, dict], bool] | None = None,
) -> None:
    def on_event(event_type: str, obj: dict) -> None:
        if accept is None or accept(event_type, obj):
            loop.trigger()

    for cache in caches:
        cache.add_listener(on_event)


def build_operator(
    config: OperatorConfig,
    management: ClusterClients,
    guest: ClusterClients | None = None,
) -> Operator:
    """Wire every domain for the configured topology.

    Args:
        config: Operator configuration
        management: Clients for the cluster the operator runs in
        guest: Clients for the workload cluster (hosted topology only)

    Raises:
        IrrecoverableWiringError: If hosted topology is configured without a guest cluster
    """
    topology = config.topology
    if topology.is_hosted and guest is None:
        raise IrrecoverableWiringError("hosted topology requires a workload cluster connection")
    workload = guest if topology.is_hosted and guest is not None else management
    workload_namespace = config.guest_namespace if topology.is_hosted else config.namespace
    logger.info("Wiring operator in %s topology (namespace %s)", topology.value, config.namespace)

    status = OperatorStatus()
    management_loader = AssetLoader({**config.image_replacements(), "NAMESPACE": config.namespace})
    workload_loader = management_loader.with_replacements(NAMESPACE=workload_namespace)

    # Caches
    management_informers = _Informers(management)
    workload_informers = management_informers if workload is management else _Informers(workload)

    caches = {
        "management/configmaps": management_informers.config_maps(config.namespace),
        "management/secrets": management_informers.secrets(config.namespace),
        "infrastructures": workload_informers.custom("Infrastructure", INFRASTRUCTURE_RESOURCE),
        "clustercsidrivers": workload_informers.custom("ClusterCSIDriver", CLUSTER_CSI_DRIVER_RESOURCE),
        "proxies": workload_informers.custom("Proxy", PROXY_RESOURCE),
    }
    if topology.is_hosted:
        caches["workload/configmaps"] = workload_informers.config_maps(workload_namespace)
    else:
        caches["workload/configmaps"] = caches["management/configmaps"]
        caches["nodes"] = management_informers.nodes()
        caches["cloud-config/configmaps"] = management_informers.config_maps(CLOUD_CONFIG_NAMESPACE)

    operator_sources = StateSources(operator=caches["clustercsidrivers"])
    controller_sources = StateSources(
        infrastructure=caches["infrastructures"],
        config_maps=[caches["management/configmaps"]],
        nodes=caches.get("nodes"),
        secrets=[caches["management/secrets"]],
        operator=caches["clustercsidrivers"],
    )
    node_sources = StateSources(
        infrastructure=caches["infrastructures"],
        config_maps=[caches["workload/configmaps"]],
        operator=caches["clustercsidrivers"],
    )

    pipelines = {
        "controller": controller_pipeline(topology, config.namespace, config.hypershift_image, config.guest_namespace),
        "node": node_pipeline(workload_namespace),
    }

    def make_loop(name: str, sync: Callable[[], Any], operand: bool = True) -> ControlLoop:
        """Create a loop. Operand loops only act while the operator is Managed."""
        loop = ControlLoop(
            name,
            sync,
            resync_interval=config.resync_interval,
            initial_backoff=config.initial_backoff,
            max_backoff=config.max_backoff,
            status=status,
            precondition=(lambda: is_managed(operator_sources)) if operand else None,
        )
        if operand:
            _trigger_on(loop, [caches["clustercsidrivers"]])
        return loop

    # Operator resource
    operator_loops = [
        make_loop(
            "ManagementStateController",
            ManagementStateController("ManagementStateController", operator_sources).sync,
            operand=False,
        ),
        make_loop(
            "LoggingSyncer",
            LogLevelController(
                "LoggingSyncer",
                operator_sources,
                default_level=logging.DEBUG if config.debug else logging.INFO,
            ).sync,
            operand=False,
        ),
    ]
    for loop in operator_loops:
        _trigger_on(loop, [caches["clustercsidrivers"]])

    operator_client = workload.operator_client
    if operator_client is not None:
        observer = ProxyConfigObserver(
            "AWSEBSDriverCSIConfigObserverController", caches["proxies"], operator_sources, operator_client
        )
        observer_loop = make_loop(observer.name, observer.sync, operand=False)
        _trigger_on(observer_loop, [caches["proxies"], caches["clustercsidrivers"]])
        operator_loops.append(observer_loop)

        status_controller = StatusController("StatusSyncer", status, operator_sources, operator_client)
        status_loop = make_loop(status_controller.name, status_controller.sync, operand=False)
        _trigger_on(status_loop, [caches["clustercsidrivers"]])
        status.add_listener(status_loop.trigger)
        operator_loops.append(status_loop)

    # Management plane
    management_loops = [
        make_loop(
            "ManagementStaticResources",
            StaticResourceController(
                "ManagementStaticResources", MANAGEMENT_STATIC_ASSETS, management_loader, management.applier
            ).sync,
        )
    ]

    deployment_controller = WorkloadController(
        "AWSEBSDriverControllerServiceController",
        "controller.yaml",
        management_loader,
        pipelines["controller"],
        management.applier,
        controller_sources,
    )
    deployment_loop = make_loop(deployment_controller.name, deployment_controller.sync)
    _trigger_on(deployment_loop, controller_sources.caches())
    management_loops.append(deployment_loop)

    if not topology.is_hosted:
        mirror = ConfigMirror(
            "CloudConfigSync",
            [
                ConfigMirrorEntry(
                    source=ResourceLocation(CLOUD_CONFIG_NAMESPACE, CLOUD_CONFIG_NAME),
                    destination=ResourceLocation(config.namespace, CLOUD_CONFIG_NAME),
                )
            ],
            {CLOUD_CONFIG_NAMESPACE: caches["cloud-config/configmaps"]},
            management.applier,
        )
        mirror_loop = make_loop(mirror.name, mirror.sync)
        _trigger_on(mirror_loop, [caches["cloud-config/configmaps"]], mirror.handles)
        management_loops.append(mirror_loop)

        management_loops.append(
            make_loop(
                "ManagementRBACResources",
                StaticResourceController(
                    "ManagementRBACResources", MANAGEMENT_RBAC_ASSETS, management_loader, management.applier
                ).sync,
            )
        )
        management_loops.append(
            make_loop(
                "ServiceMonitor",
                StaticResourceController(
                    "ServiceMonitor",
                    SERVICE_MONITOR_ASSETS,
                    management_loader,
                    management.applier,
                    ignore_not_found_on_create=True,
                ).sync,
            )
        )

    # Workload plane
    workload_loops = [
        make_loop(
            "WorkloadStaticResources",
            StaticResourceController(
                "WorkloadStaticResources", WORKLOAD_STATIC_ASSETS, workload_loader, workload.applier
            ).sync,
        ),
        make_loop(
            "VolumeSnapshotClassController",
            ConditionalResourceController(
                "VolumeSnapshotClassController",
                ResourceGate(
                    "VolumeSnapshotClass",
                    VOLUME_SNAPSHOT_CLASS_ASSETS,
                    crd_exists_predicate(workload.probe, VOLUME_SNAPSHOT_CLASS_CRD),
                ),
                workload_loader,
                workload.applier,
            ).sync,
        ),
    ]

    node_controller = WorkloadController(
        "AWSEBSDriverNodeServiceController",
        "node.yaml",
        workload_loader,
        pipelines["node"],
        workload.applier,
        node_sources,
    )
    node_loop = make_loop(node_controller.name, node_controller.sync)
    _trigger_on(node_loop, node_sources.caches())
    workload_loops.append(node_loop)

    workload_domain_informers = [] if workload_informers is management_informers else workload_informers.informers
    domains = [
        Domain("operator", operator_loops),
        Domain("management", management_loops, management_informers.informers),
        Domain("workload", workload_loops, workload_domain_informers),
    ]

    return Operator(
        config=config,
        topology=topology,
        orchestrator=Orchestrator(domains, status),
        status=status,
        pipelines=pipelines,
        caches=caches,
    )
