"""Tests for object caches, state snapshots and the ClusterState model."""

from types import MappingProxyType

import pytest
from conftest import config_map, synced_cache

from ebs_operator.cache import ObjectCache
from ebs_operator.errors import TransientLookupError
from ebs_operator.snapshot import StateSources
from ebs_operator.state import ClusterState, Infrastructure, OperatorSpec, hash_data

INFRASTRUCTURE = {
    "apiVersion": "config.openshift.io/v1",
    "kind": "Infrastructure",
    "metadata": {"name": "cluster"},
    "status": {
        "infrastructureName": "test-abc12",
        "platformStatus": {
            "type": "AWS",
            "aws": {
                "region": "us-west-2",
                "resourceTags": [{"key": "team", "value": "storage"}],
                "serviceEndpoints": [{"name": "ec2", "url": "https://ec2.example"}],
            },
        },
    },
}


class TestObjectCache:
    """Test suite for ObjectCache."""

    def test_unsynced_lookups_raise(self) -> None:
        """Test that lookups before the initial list are transient errors."""
        cache = ObjectCache("ConfigMap", "ns")

        with pytest.raises(TransientLookupError, match="has not synced"):
            cache.get("a")
        with pytest.raises(TransientLookupError):
            cache.list()

    def test_replace_upsert_delete(self) -> None:
        """Test list, add and delete bookkeeping."""
        cache = ObjectCache("ConfigMap", "ns")
        cache.replace([config_map("ns", "a")])

        cache.upsert(config_map("ns", "b", {"k": "v"}), "ADDED")
        assert cache.get("b")["data"] == {"k": "v"}

        cache.delete(config_map("ns", "a"))
        assert cache.get("a") is None
        assert [o["metadata"]["name"] for o in cache.list()] == ["b"]

    def test_listeners(self) -> None:
        """Test that listeners see sync, add and delete events in order."""
        events = []
        cache = ObjectCache("ConfigMap", "ns")
        cache.add_listener(lambda event_type, obj: events.append((event_type, obj.get("metadata", {}).get("name"))))

        cache.replace([])
        cache.upsert(config_map("ns", "a"), "ADDED")
        cache.delete(config_map("ns", "a"))

        assert events == [("SYNCED", None), ("ADDED", "a"), ("DELETED", "a")]

    def test_cluster_scoped_get(self) -> None:
        """Test lookups of cluster-scoped objects."""
        cache = synced_cache("Infrastructure", "", [INFRASTRUCTURE])

        assert cache.get("cluster") is INFRASTRUCTURE


class TestClusterState:
    """Test suite for ClusterState and Infrastructure."""

    def test_infrastructure_from_object(self) -> None:
        """Test reading the AWS platform status of the Infrastructure."""
        infra = Infrastructure.from_object(INFRASTRUCTURE)

        assert infra.infrastructure_name == "test-abc12"
        assert infra.platform_type == "AWS"
        assert infra.region == "us-west-2"
        assert [(t.key, t.value) for t in infra.resource_tags] == [("team", "storage")]
        assert infra.endpoint("ec2") == "https://ec2.example"
        assert infra.endpoint("s3") == ""
        assert infra.has_aws_status

    def test_state_is_read_only(self) -> None:
        """Test that hooks cannot modify the snapshot."""
        state = ClusterState(config_maps={("ns", "a"): {"k": "v"}}, nodes=({"a": "b"},))

        assert isinstance(state.config_maps, MappingProxyType)
        with pytest.raises(TypeError):
            state.config_map("ns", "a")["k"] = "changed"
        with pytest.raises(TypeError):
            state.nodes[0]["a"] = "changed"

    def test_count_nodes(self) -> None:
        """Test counting nodes by label selector."""
        state = ClusterState(nodes=({"role": "master", "zone": "a"}, {"role": "master"}, {"role": "worker"}))

        assert state.count_nodes({"role": "master"}) == 2
        assert state.count_nodes({"role": "master", "zone": "a"}) == 1
        assert state.count_nodes({}) == 3
        assert ClusterState().count_nodes({"role": "master"}) is None

    def test_hash_data_is_order_independent(self) -> None:
        """Test that secret hashes ignore key order."""
        assert hash_data({"a": "1", "b": "2"}) == hash_data({"b": "2", "a": "1"})
        assert hash_data({"a": "1"}) != hash_data({"a": "2"})

    def test_operator_spec_observed_proxy(self) -> None:
        """Test reading logLevel and the observed proxy from the spec."""
        spec = OperatorSpec.model_validate(
            {"logLevel": "Debug", "observedConfig": {"targetcsiconfig": {"proxy": {"httpsProxy": "https://p"}}}}
        )

        assert spec.log_level == "Debug"
        assert spec.observed_proxy() == {"httpsProxy": "https://p"}
        assert OperatorSpec().observed_proxy() == {}


class TestStateSources:
    """Test suite for snapshots taken from caches."""

    def test_snapshot(self) -> None:
        """Test a snapshot of synced caches."""
        sources = StateSources(
            infrastructure=synced_cache("Infrastructure", "", [INFRASTRUCTURE]),
            config_maps=[synced_cache("ConfigMap", "ns", [config_map("ns", "cm", {"k": "v"})])],
            nodes=synced_cache("Node", "", [{"metadata": {"name": "n1", "labels": {"role": "master"}}}]),
            secrets=[synced_cache("Secret", "ns", [{"metadata": {"name": "s", "namespace": "ns"}, "data": {"a": "b"}}])],
        )

        state = sources.snapshot()

        assert state.infrastructure.region == "us-west-2"
        assert state.config_map("ns", "cm") == {"k": "v"}
        assert state.count_nodes({"role": "master"}) == 1
        assert state.secret_hash("ns", "s") == hash_data({"a": "b"})

    def test_unsynced_caches_mean_absent(self) -> None:
        """Test that unsynced caches contribute nothing to a snapshot."""
        sources = StateSources(
            infrastructure=ObjectCache("Infrastructure"),
            config_maps=[ObjectCache("ConfigMap", "ns")],
            nodes=ObjectCache("Node"),
            operator=ObjectCache("ClusterCSIDriver"),
        )

        state = sources.snapshot()

        assert state.infrastructure is None
        assert state.config_map("ns", "cm") is None
        assert state.nodes is None
        assert sources.operator_spec() == OperatorSpec()

    def test_operator_spec(self) -> None:
        """Test reading the ClusterCSIDriver spec."""
        sources = StateSources(
            operator=synced_cache(
                "ClusterCSIDriver",
                "",
                [
                    {
                        "metadata": {"name": "ebs.csi.aws.com"},
                        "spec": {"logLevel": "TraceAll", "managementState": "Unmanaged"},
                    }
                ],
            )
        )

        assert sources.operator_spec().log_level == "TraceAll"
        assert sources.operator_spec().is_managed is False

    def test_caches(self) -> None:
        """Test the cache listing order."""
        infra = ObjectCache("Infrastructure")
        cms = ObjectCache("ConfigMap", "ns")

        assert StateSources(infrastructure=infra, config_maps=[cms]).caches() == [cms, infra]

    def test_wait_for_sync(self) -> None:
        """Test that wait_for_sync names every cache still listing."""
        synced = synced_cache("Infrastructure")
        pending = ObjectCache("ConfigMap", "ns")
        sources = StateSources(infrastructure=synced, config_maps=[pending], nodes=ObjectCache("Node"))

        with pytest.raises(TransientLookupError, match=r"ConfigMap/ns, Node/\*"):
            sources.wait_for_sync()

        pending.replace([])
        sources.nodes.replace([])
        sources.wait_for_sync()

    def test_strict_operator_spec(self) -> None:
        """Test that a strict read waits for the ClusterCSIDriver instead of defaulting."""
        sources = StateSources(operator=synced_cache("ClusterCSIDriver"))

        assert sources.operator_spec() == OperatorSpec()
        with pytest.raises(TransientLookupError, match="does not exist"):
            sources.operator_spec(strict=True)
        with pytest.raises(TransientLookupError):
            StateSources().operator_spec(strict=True)
