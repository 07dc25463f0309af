"""Error taxonomy for the operator.

ConfigurationError aborts the current reconciliation tick. TransientLookupError
means an optional input is not available yet and the feature is treated as
absent. IrrecoverableWiringError is fatal at startup.
"""


class OperatorError(Exception):
    """Base class for operator errors."""


class ConfigurationError(OperatorError):
    """A required structural precondition is missing (e.g. a container)."""


class MissingContainerError(ConfigurationError):
    """A hook needed to mutate a container that is not in the workload."""

    def __init__(self, container: str, purpose: str) -> None:
        self.container = container
        self.purpose = purpose
        super().__init__(f"could not {purpose} because the {container} container is missing from the workload")


class TransientLookupError(OperatorError):
    """A cache lookup raced with population or an optional object is absent."""


class IrrecoverableWiringError(OperatorError):
    """A required collaborator could not be constructed at startup."""


class ResourceSyncError(OperatorError):
    """One or more resources could not be applied or deleted."""

    def __init__(self, controller: str, failures: list[str]) -> None:
        self.controller = controller
        self.failures = failures
        super().__init__(f"{controller}: " + "; ".join(failures))


class OperatorStopped(OperatorError):
    """The orchestrator stopped because the root context was cancelled."""

    def __init__(self, message: str = "stopped") -> None:
        super().__init__(message)
