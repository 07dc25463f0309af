"""Tests for the hook pipeline executor and topology hook lists."""

import copy
from typing import Any

import pytest

from ebs_operator.errors import ConfigurationError, TransientLookupError
from ebs_operator.pipeline import Context, PipelineExecutor, Topology, get_hook_spec, hook
from ebs_operator.pipeline.hook import HookSpec
from ebs_operator.pipeline.topology import controller_hooks, node_hooks
from ebs_operator.state import ClusterState, Infrastructure, ResourceTag
from ebs_operator.workload import set_env


def _labelled(label: str):
    """Build a handler that marks the pod template with an annotation."""

    def handler(ctx: Context, params: dict[str, Any]) -> Context:
        ctx.workload.set_pod_annotation(label, str(params.get("value", "set")))
        return ctx

    return handler


def _spec(name: str, handler=None, guard=None, **params: Any) -> HookSpec:
    """Build a HookSpec without going through the decorator."""
    return HookSpec(name=name, handler=handler or _labelled(name), guard=guard or (lambda ctx: True), params=params)


@pytest.fixture
def base():
    """Minimal Deployment with a csi-driver container."""
    return {
        "kind": "Deployment",
        "metadata": {"name": "test"},
        "spec": {"template": {"spec": {"containers": [{"name": "csi-driver"}]}}},
    }


class TestHookDecorator:
    """Test the @hook decorator and get_hook_spec."""

    def test_attaches_spec(self) -> None:
        """Test that name and description come from the function."""

        @hook()
        def with_something(ctx: Context, params: dict[str, Any]) -> Context:
            """Do something useful.

            More detail.
            """
            return ctx

        spec = get_hook_spec(with_something)

        assert spec.name == "with_something"
        assert spec.description == "Do something useful."
        assert spec.params == {}

    def test_explicit_guard(self, base) -> None:
        """Test that a False guard skips the hook."""

        @hook(guard=lambda ctx: False)
        def never_runs(ctx: Context, params: dict[str, Any]) -> Context:
            raise AssertionError("should not run")

        executor = PipelineExecutor([get_hook_spec(never_runs)])

        assert executor.apply(base) == base

    def test_bind_params(self) -> None:
        """Test that parameters are bound per spec, not on the function."""

        @hook()
        def with_param(ctx: Context, params: dict[str, Any]) -> Context:
            return ctx

        spec = get_hook_spec(with_param, namespace="ns")

        assert spec.params == {"namespace": "ns"}
        assert get_hook_spec(with_param).params == {}

    def test_not_a_hook(self) -> None:
        """Test that an undecorated function is rejected."""
        with pytest.raises(TypeError):
            get_hook_spec(lambda ctx, params: ctx)


class TestPipelineExecutor:
    """Test hook execution semantics."""

    def test_runs_in_order(self, base) -> None:
        """Test that hooks run in list order."""
        calls = []

        def recorder(name):
            def handler(ctx, params):
                calls.append(name)
                return ctx

            return handler

        executor = PipelineExecutor([_spec(n, recorder(n)) for n in ("c", "a", "b")])
        executor.apply(base)

        assert calls == ["c", "a", "b"]
        assert executor.get_execution_order() == ["c", "a", "b"]

    def test_duplicate_hooks_rejected(self) -> None:
        """Test that a hook name may only appear once."""
        with pytest.raises(ValueError, match="Duplicate hooks"):
            PipelineExecutor([_spec("a"), _spec("b"), _spec("a")])

    def test_base_not_mutated(self, base) -> None:
        """Test that the base manifest is left untouched."""
        executor = PipelineExecutor([_spec("a"), _spec("b")])
        original = copy.deepcopy(base)

        result = executor.apply(base)

        assert result["spec"]["template"]["metadata"]["annotations"] == {"a": "set", "b": "set"}
        assert base == original

    def test_deterministic(self, base) -> None:
        """Test that the same inputs give the same manifest."""
        state = ClusterState(
            infrastructure=Infrastructure(
                region="us-east-1",
                resource_tags=(ResourceTag(key="a", value="b"),),
            )
        )
        executor = PipelineExecutor(controller_hooks(Topology.STANDALONE, "ns"))

        assert executor.apply(base, state) == executor.apply(base, state)

    def test_configuration_error_fails_fast(self, base) -> None:
        """Test that no hook runs after a configuration error."""
        later = []

        def failing(ctx, params):
            raise ConfigurationError("csi-driver container is missing")

        def after(ctx, params):
            later.append("ran")
            return ctx

        executor = PipelineExecutor([_spec("a"), _spec("failing", failing), _spec("after", after)])

        with pytest.raises(ConfigurationError):
            executor.apply(base)
        assert later == []

    def test_transient_error_discards_hook_changes(self, base) -> None:
        """Test that a lookup failure drops the partial changes of that hook only."""

        def flaky(ctx, params):
            set_env(ctx.workload.find_container("csi-driver"), "PARTIAL", "1")
            raise TransientLookupError("cache not synced")

        executor = PipelineExecutor([_spec("flaky", flaky), _spec("after")])
        result = executor.apply(base)

        container = result["spec"]["template"]["spec"]["containers"][0]
        assert "env" not in container
        assert result["spec"]["template"]["metadata"]["annotations"] == {"after": "set"}

    def test_transient_error_in_guard_skips(self, base) -> None:
        """Test that a lookup failure in a guard skips the hook."""

        def guard(ctx):
            raise TransientLookupError("not synced")

        executor = PipelineExecutor([_spec("guarded", guard=guard), _spec("after")])

        result = executor.apply(base)

        assert result["spec"]["template"]["metadata"]["annotations"] == {"after": "set"}

    def test_params_are_copied(self, base) -> None:
        """Test that a hook cannot change its bound parameters."""

        def mutating(ctx, params):
            params["value"] = "changed"
            return ctx

        spec = _spec("mutating", mutating, value="original")
        PipelineExecutor([spec]).apply(base)

        assert spec.params == {"value": "original"}

    def test_finalize(self, base) -> None:
        """Test the deployment controller entry point."""
        executor = PipelineExecutor([_spec("a")])
        result = executor.finalize(None, base, ClusterState())

        assert result["spec"]["template"]["metadata"]["annotations"] == {"a": "set"}


class TestTopology:
    """Test the hook lists of each topology."""

    def test_from_guest_kubeconfig(self) -> None:
        """Test that a guest kubeconfig selects hosted topology."""
        assert Topology.from_guest_kubeconfig(None) is Topology.STANDALONE
        assert Topology.from_guest_kubeconfig("") is Topology.STANDALONE
        assert Topology.from_guest_kubeconfig("/etc/guest/kubeconfig") is Topology.HOSTED

    def test_hosted_hook_order(self) -> None:
        """Test the hosted controller hook order."""
        names = [h.name for h in controller_hooks(Topology.HOSTED, "ns", "image")]

        assert names == [
            "with_hypershift_deployment",
            "with_hosted_replicas",
            "with_namespace",
            "with_secret_hash_annotation",
            "with_observed_proxy",
            "with_aws_region",
            "with_custom_tags",
            "with_custom_endpoint",
            "with_trusted_ca_bundle",
        ]

    def test_standalone_hook_order(self) -> None:
        """Test the standalone controller hook order."""
        names = [h.name for h in controller_hooks(Topology.STANDALONE, "ns")]

        assert names == [
            "with_node_replicas",
            "with_namespace",
            "with_secret_hash_annotation",
            "with_observed_proxy",
            "with_custom_ca_bundle",
            "with_aws_region",
            "with_custom_tags",
            "with_custom_endpoint",
            "with_trusted_ca_bundle",
        ]

    def test_custom_ca_bundle_standalone_only(self) -> None:
        """Test that only standalone reads the custom CA from the mirrored cloud config."""
        hosted = {h.name: h for h in controller_hooks(Topology.HOSTED, "ns")}
        standalone = {h.name: h for h in controller_hooks(Topology.STANDALONE, "ns")}

        assert "with_custom_ca_bundle" not in hosted
        assert standalone["with_custom_ca_bundle"].params == {"namespace": "ns", "config_map": "kube-cloud-config"}

    def test_node_hooks(self) -> None:
        """Test the node hook list."""
        assert [h.name for h in node_hooks("ns")] == ["with_observed_proxy", "with_trusted_ca_bundle"]
