"""Loading and rendering of the static manifests shipped with the operator.

Manifests may contain ${NAME} placeholders which are replaced before the YAML
is parsed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from importlib.resources import files
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ASSETS_PACKAGE = "ebs_operator.assets"

_PLACEHOLDER = re.compile(r"\$\{([A-Z0-9_]+)\}")

# Operator log level -> klog verbosity
LOG_LEVEL_VERBOSITY = {
    "Normal": 2,
    "Debug": 4,
    "Trace": 6,
    "TraceAll": 8,
}


def log_level_verbosity(log_level: str) -> str:
    return str(LOG_LEVEL_VERBOSITY.get(log_level, 2))


def read_asset(name: str) -> str:
    """Read a manifest shipped in the assets package.

    Raises:
        FileNotFoundError: If the asset does not exist
    """
    return files(ASSETS_PACKAGE).joinpath(name).read_text()


def substitute(text: str, replacements: Mapping[str, str]) -> str:
    """Replace ${NAME} placeholders. Unknown placeholders are left untouched."""

    def replace_var(match: re.Match[str]) -> str:
        return replacements.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(replace_var, text)


class AssetLoader:
    """Renders assets with a fixed set of replacements.

    Attributes:
        replacements: Placeholder values applied to every asset
    """

    def __init__(self, replacements: Mapping[str, str] | None = None) -> None:
        self.replacements = dict(replacements or {})

    def render(self, name: str, extra: Mapping[str, str] | None = None) -> dict[str, Any]:
        """Render an asset into a manifest dict.

        Args:
            name: Asset path relative to the assets package
            extra: Additional replacements, overriding the fixed ones
        """
        values = {**self.replacements, **(extra or {})}
        manifest = yaml.safe_load(substitute(read_asset(name), values))
        if not isinstance(manifest, dict):
            raise ValueError(f"Asset {name} is not a single YAML object")
        return manifest

    def with_replacements(self, **replacements: str) -> AssetLoader:
        return AssetLoader({**self.replacements, **replacements})

    def unresolved(self, name: str, extra: Mapping[str, str] | None = None) -> set[str]:
        """Get the placeholders of an asset that have no value."""
        values = {**self.replacements, **(extra or {})}
        return {var for var in _PLACEHOLDER.findall(read_asset(name)) if var not in values}
