"""Static manifests rendered by the operator."""
