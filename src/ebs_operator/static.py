"""Unconditional application of static assets."""

from __future__ import annotations

import logging

from ebs_operator.errors import ResourceSyncError
from ebs_operator.kube import KindNotServedError, ResourceApplier
from ebs_operator.manifests import AssetLoader

logger = logging.getLogger(__name__)


class StaticResourceController:
    """Applies a fixed list of assets every tick.

    Attributes:
        name: Controller name
        assets: Asset paths, applied in order
        ignore_not_found_on_create: Skip assets whose kind the API server does
            not serve (e.g. a ServiceMonitor without the monitoring stack)
    """

    def __init__(
        self,
        name: str,
        assets: list[str],
        loader: AssetLoader,
        applier: ResourceApplier,
        ignore_not_found_on_create: bool = False,
    ) -> None:
        self.name = name
        self.assets = list(assets)
        self.loader = loader
        self.applier = applier
        self.ignore_not_found_on_create = ignore_not_found_on_create

    def sync(self) -> None:
        failures = []
        for asset in self.assets:
            try:
                self.applier.apply(self.loader.render(asset))
            except KindNotServedError as e:
                if self.ignore_not_found_on_create:
                    logger.debug("%s: skipping %s: %s", self.name, asset, e)
                    continue
                failures.append(f"{asset}: {e}")
            except Exception as e:
                failures.append(f"{asset}: {e}")

        if failures:
            raise ResourceSyncError(self.name, failures)
