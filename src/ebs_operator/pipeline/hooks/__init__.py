"""Pipeline hooks.

Each hook is decorated with @hook and takes (Context, params). The topology
module binds params and fixes the execution order.
"""

from ebs_operator.pipeline.hooks.ca_bundle import with_custom_ca_bundle, with_trusted_ca_bundle
from ebs_operator.pipeline.hooks.hypershift import with_hosted_replicas, with_hypershift_deployment
from ebs_operator.pipeline.hooks.infrastructure import with_aws_region, with_custom_endpoint, with_custom_tags
from ebs_operator.pipeline.hooks.namespace import with_namespace
from ebs_operator.pipeline.hooks.proxy import with_observed_proxy
from ebs_operator.pipeline.hooks.replicas import with_node_replicas
from ebs_operator.pipeline.hooks.secret_hash import with_secret_hash_annotation

__all__ = [
    "with_hypershift_deployment",
    "with_hosted_replicas",
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
