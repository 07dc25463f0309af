"""Hook specification and decorator.

Defines the HookSpec class and @hook decorator. Hooks are plain functions
taking a Context and a params dict; the decorator attaches a HookSpec to the
function so topology builders can bind parameters without a global registry.
"""

from __future__ import annotations

import dataclasses
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ebs_operator.pipeline.context import Context


# Type aliases
GuardFn = Callable[["Context"], bool]
HandlerFn = Callable[["Context", dict[str, Any]], "Context"]


def always_true(ctx: Context) -> bool:
    """Default guard that always returns True."""
    return True


@dataclass(frozen=True)
class HookSpec:
    """Specification for a pipeline hook.

    Attributes:
        name: Unique hook identifier
        handler: Function that transforms context
        guard: Predicate that determines if handler should run
        params: Static parameters passed to handler
        description: One-line summary shown by the CLI
    """

    name: str
    handler: HandlerFn
    guard: GuardFn = always_true
    params: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HookSpec):
            return NotImplemented
        return self.name == other.name

    def should_run(self, ctx: Context) -> bool:
        """Check if this hook should run for the given context.

        Args:
            ctx: Pipeline context

        Returns:
            True if guard passes, False otherwise
        """
        return self.guard(ctx)

    def execute(self, ctx: Context) -> Context:
        """Execute the hook handler with its bound params.

        Args:
            ctx: Pipeline context

        Returns:
            Modified context
        """
        return self.handler(ctx, dict(self.params))

    def bind(self, **params: Any) -> HookSpec:
        """Return a copy of this spec with params merged in."""
        return dataclasses.replace(self, params={**self.params, **params})


def hook(*, guard: GuardFn | None = None) -> Callable[[HandlerFn], HandlerFn]:
    """Decorator to declare a function as a pipeline hook.

    Args:
        guard: Predicate that determines if handler should run

    Returns:
        Decorator function

    Example:
        @hook()
        def with_aws_region(ctx: Context, params: dict) -> Context:
            ...

        # Define guard separately (naming convention: {hook_name}_guard)
        def with_aws_region_guard(ctx: Context) -> bool:
            return True
    """

    def decorator(fn: HandlerFn) -> HandlerFn:
        resolved_guard = guard
        if resolved_guard is None:
            # Look for {fn_name}_guard in the same module
            module = sys.modules.get(fn.__module__)
            if module:
                resolved_guard = getattr(module, f"{fn.__name__}_guard", None)

        doc = (fn.__doc__ or "").strip().splitlines()
        spec = HookSpec(
            name=fn.__name__,
            handler=fn,
            guard=resolved_guard or always_true,
            description=doc[0] if doc else "",
        )

        # Attach spec to function for introspection
        fn._hook_spec = spec  # type: ignore[attr-defined]
        return fn

    return decorator


def get_hook_spec(fn: HandlerFn, **params: Any) -> HookSpec:
    """Get the HookSpec attached by @hook, optionally with params bound.

    Raises:
        TypeError: If fn was not decorated with @hook
    """
    spec: HookSpec | None = getattr(fn, "_hook_spec", None)
    if spec is None:
        raise TypeError(f"{getattr(fn, '__name__', fn)!r} is not a pipeline hook")
    return spec.bind(**params) if params else spec
