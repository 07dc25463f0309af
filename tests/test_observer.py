"""Tests for the proxy configuration observer."""

import pytest
from conftest import FakeOperatorClient, operator_cache, synced_cache

from ebs_operator.cache import ObjectCache
from ebs_operator.errors import TransientLookupError
from ebs_operator.observer import ProxyConfigObserver, observed_proxy
from ebs_operator.snapshot import StateSources


def proxy(**status):
    """Build the cluster Proxy object."""
    return {"metadata": {"name": "cluster"}, "spec": {}, "status": status}


def observed_spec(**settings):
    """Build a ClusterCSIDriver spec carrying an observed proxy."""
    return {"observedConfig": {"targetcsiconfig": {"proxy": settings}}}


def observer(proxies: ObjectCache, spec=None, client=None) -> ProxyConfigObserver:
    """Create an observer over a ClusterCSIDriver with the given spec."""
    return ProxyConfigObserver(
        "AWSEBSDriverCSIConfigObserverController",
        proxies,
        StateSources(operator=operator_cache(spec)),
        client or FakeOperatorClient(),
    )


def test_observed_proxy_skips_empty_fields() -> None:
    """Test that only non-empty proxy settings are observed."""
    assert observed_proxy(proxy(httpProxy="http://proxy:3128", httpsProxy="", noProxy=".cluster.local")) == {
        "httpProxy": "http://proxy:3128",
        "noProxy": ".cluster.local",
    }
    assert observed_proxy(None) == {}


class TestProxyConfigObserver:
    """Test syncing the cluster proxy into observedConfig."""

    def test_patches_new_proxy(self) -> None:
        """Test that a newly configured proxy is written to the spec."""
        client = FakeOperatorClient()
        proxies = synced_cache("Proxy", "", [proxy(httpProxy="http://proxy:3128", noProxy=".cluster.local")])

        assert observer(proxies, client=client).sync() is True

        assert client.spec_patches == [
            observed_spec(httpProxy="http://proxy:3128", httpsProxy=None, noProxy=".cluster.local")
        ]

    def test_removed_settings_are_cleared(self) -> None:
        """Test that settings no longer on the Proxy are removed from the spec."""
        client = FakeOperatorClient()
        proxies = synced_cache("Proxy", "", [proxy()])
        spec = observed_spec(httpProxy="http://old:3128", httpsProxy="https://old:3128")

        observer(proxies, spec, client).sync()

        assert client.spec_patches == [observed_spec(httpProxy=None, httpsProxy=None, noProxy=None)]

    def test_no_patch_when_unchanged(self) -> None:
        """Test that an observed proxy matching the cluster is left alone."""
        client = FakeOperatorClient()
        proxies = synced_cache("Proxy", "", [proxy(httpsProxy="https://proxy:3128")])
        spec = observed_spec(httpsProxy="https://proxy:3128")

        assert observer(proxies, spec, client).sync() is False
        assert client.spec_patches == []

    def test_no_proxy_object(self) -> None:
        """Test that a cluster without a Proxy and without observed settings needs no patch."""
        client = FakeOperatorClient()

        assert observer(synced_cache("Proxy"), client=client).sync() is False
        assert client.spec_patches == []

    def test_waits_for_proxy_cache(self) -> None:
        """Test that nothing is patched before the Proxy informer has listed."""
        client = FakeOperatorClient()

        with pytest.raises(TransientLookupError):
            observer(ObjectCache("Proxy"), client=client).sync()
        assert client.spec_patches == []
