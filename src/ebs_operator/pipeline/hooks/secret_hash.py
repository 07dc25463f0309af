"""Secret hash annotation hook.

Annotating the pod template with the hash of the cloud credentials makes the
Deployment roll out whenever the credentials change.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ebs_operator.pipeline.hook import hook

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context

logger = logging.getLogger(__name__)


def secret_annotation_key(namespace: str, name: str) -> str:
    return f"operator.openshift.io/dep-{namespace}-{name}-secret"


@hook()
def with_secret_hash_annotation(ctx: Context, params: dict[str, Any]) -> Context:
    """Annotate the pod template with the credentials secret hash.

    Args:
        ctx: Pipeline context
        params: Must contain 'namespace' and 'secret_name'

    Returns:
        Modified context, unchanged if the secret is not cached
    """
    namespace = params["namespace"]
    name = params["secret_name"]

    secret_hash = ctx.state.secret_hash(namespace, name)
    if secret_hash is None:
        logger.debug("Secret %s/%s not cached, skipping hash annotation", namespace, name)
        return ctx

    ctx.workload.set_pod_annotation(secret_annotation_key(namespace, name), secret_hash)
    return ctx
