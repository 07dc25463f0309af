"""Well-known names shared by hooks, wiring and assets."""

DEFAULT_NAMESPACE = "openshift-cluster-csi-drivers"
OPERATOR_NAME = "aws-ebs-csi-driver-operator"
OPERAND_NAME = "aws-ebs-csi-driver"
CLUSTER_CSI_DRIVER_NAME = "ebs.csi.aws.com"

SECRET_NAME = "ebs-cloud-credentials"
TRUSTED_CA_CONFIG_MAP = "aws-ebs-csi-driver-trusted-ca-bundle"
TRUSTED_CA_BUNDLE_KEY = "ca-bundle.crt"

CLOUD_CONFIG_NAMESPACE = "openshift-config-managed"
CLOUD_CONFIG_NAME = "kube-cloud-config"
CA_BUNDLE_KEY = "ca-bundle.pem"

DRIVER_CONTAINER = "csi-driver"

HYPERSHIFT_PRIORITY_CLASS = "hypershift-control-plane"
HYPERSHIFT_IMAGE_ENV = "HYPERSHIFT_IMAGE"
HOSTED_KUBECONFIG_VOLUME = "hosted-kubeconfig"
HOSTED_KUBECONFIG_SECRET = "admin-kubeconfig"
HOSTED_KUBECONFIG_DIR = "/etc/hosted-kubernetes"
HOSTED_KUBECONFIG_PATH = f"{HOSTED_KUBECONFIG_DIR}/kubeconfig"
BOUND_SA_TOKEN_VOLUME = "bound-sa-token"
METRICS_SERVING_CERT_VOLUME = "metrics-serving-cert"

# Sidecars that cannot run off-cluster
HOSTED_REMOVED_SIDECARS = frozenset(
    {
        "driver-kube-rbac-proxy",
        "provisioner-kube-rbac-proxy",
        "attacher-kube-rbac-proxy",
        "resizer-kube-rbac-proxy",
        "snapshotter-kube-rbac-proxy",
    }
)

# Sidecars that talk to the workload cluster API
HOSTED_KUBECONFIG_SIDECARS = frozenset(
    {
        "csi-provisioner",
        "csi-attacher",
        "csi-snapshotter",
        "csi-resizer",
    }
)

VOLUME_SNAPSHOT_CLASS_CRD = "volumesnapshotclasses.snapshot.storage.k8s.io"

# Cluster-scoped custom resources, as CustomObjectsApi arguments
CLUSTER_CSI_DRIVER_RESOURCE = {"group": "operator.openshift.io", "version": "v1", "plural": "clustercsidrivers"}
INFRASTRUCTURE_RESOURCE = {"group": "config.openshift.io", "version": "v1", "plural": "infrastructures"}
PROXY_RESOURCE = {"group": "config.openshift.io", "version": "v1", "plural": "proxies"}
CLUSTER_PROXY_NAME = "cluster"
