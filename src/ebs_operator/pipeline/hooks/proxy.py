"""Observed proxy hook.

Copies the cluster-wide proxy settings observed into the operator
spec to every container of the workload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ebs_operator.pipeline.guards import has_observed_proxy
from ebs_operator.pipeline.hook import hook
from ebs_operator.workload import set_env

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context

PROXY_ENV = {
    "httpProxy": "HTTP_PROXY",
    "httpsProxy": "HTTPS_PROXY",
    "noProxy": "NO_PROXY",
}


def with_observed_proxy_guard(ctx: Context) -> bool:
    """Guard: Run if a proxy was observed."""
    return has_observed_proxy(ctx)


@hook()
def with_observed_proxy(ctx: Context, params: dict[str, Any]) -> Context:
    """Inject HTTP_PROXY, HTTPS_PROXY and NO_PROXY env into all containers."""
    proxy = ctx.operator_spec.observed_proxy()
    for container in ctx.workload.containers:
        for key, env_name in PROXY_ENV.items():
            value = proxy.get(key)
            if value:
                set_env(container, env_name, value)
    return ctx
