"""Pipeline executor with fixed-order, fail-fast execution.

Runs hooks strictly in the order they were configured. The first
ConfigurationError aborts the run and no partially mutated manifest is ever
returned. A TransientLookupError raised by a hook discards that hook's
changes and the run continues without the feature.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ebs_operator.errors import ConfigurationError, TransientLookupError
from ebs_operator.pipeline.context import Context

if TYPE_CHECKING:
    from ebs_operator.pipeline.hook import HookSpec
    from ebs_operator.state import ClusterState, OperatorSpec
    from ebs_operator.workload import Manifest

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """Executes hooks in a fixed sequence.

    Attributes:
        name: Pipeline name used in logs
        hooks: Hook specifications in execution order
    """

    def __init__(self, hooks: list[HookSpec], name: str = "pipeline") -> None:
        """Initialize executor with hooks.

        Args:
            hooks: Hook specifications, in execution order
            name: Pipeline name used in logs

        Raises:
            ValueError: If two hooks share a name
        """
        names = [h.name for h in hooks]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate hooks in {name}: {', '.join(duplicates)}")

        self.name = name
        self.hooks: tuple[HookSpec, ...] = tuple(hooks)

        logger.info("Pipeline %s execution order: %s", name, " → ".join(names) or "(empty)")

    def apply(
        self,
        base_manifest: Manifest,
        state: ClusterState | None = None,
        operator_spec: OperatorSpec | None = None,
    ) -> Manifest:
        """Run the pipeline against a fresh copy of base_manifest.

        Args:
            base_manifest: Base template; never mutated
            state: Cluster state snapshot
            operator_spec: Operator custom resource spec

        Returns:
            Final manifest

        Raises:
            ConfigurationError: If a hook found a required precondition missing
        """
        ctx = Context.from_manifest(base_manifest, state, operator_spec)
        for spec in self.hooks:
            ctx = self._execute_hook(ctx, spec)
        return ctx.to_manifest()

    def finalize(self, operator_spec: OperatorSpec, base_manifest: Manifest, state: ClusterState) -> Manifest:
        """Deployment-controller style entry point: (operator spec, base) -> final manifest."""
        return self.apply(base_manifest, state, operator_spec)

    def _execute_hook(self, ctx: Context, spec: HookSpec) -> Context:
        """Execute a single hook.

        Args:
            ctx: Pipeline context
            spec: Hook specification

        Returns:
            Modified context, or ctx unchanged if the hook was skipped
        """
        hook_name = spec.name

        try:
            if not spec.should_run(ctx):
                logger.debug("Hook '%s' skipped (guard)", hook_name)
                return ctx
        except TransientLookupError as e:
            logger.debug("Hook '%s' skipped (lookup): %s", hook_name, e)
            return ctx

        # Run against a fork so a lookup failure mid-hook leaves no trace
        logger.debug("Executing hook '%s'", hook_name)
        try:
            return spec.execute(ctx.fork())
        except TransientLookupError as e:
            logger.debug("Hook '%s' skipped (lookup): %s", hook_name, e)
            return ctx
        except ConfigurationError as e:
            logger.error(
                "Hook '%s' failed in %s: %s",
                hook_name,
                self.name,
                e,
                extra={"event": "hook_failed", "hook": hook_name},
            )
            raise

    def get_execution_order(self) -> list[str]:
        """Get hook names in execution order.

        Returns:
            List of hook names
        """
        return [h.name for h in self.hooks]

    def describe(self) -> list[tuple[str, str]]:
        """Get (name, description) pairs in execution order."""
        return [(h.name, h.description) for h in self.hooks]
