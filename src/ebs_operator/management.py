"""Controllers acting on the operator's own spec fields."""

from __future__ import annotations

import logging

from ebs_operator.errors import ConfigurationError
from ebs_operator.snapshot import StateSources

logger = logging.getLogger(__name__)

MANAGED = "Managed"
UNMANAGED = "Unmanaged"
REMOVED = "Removed"

# spec.operatorLogLevel -> level of the operator's own loggers
OPERATOR_LOG_LEVELS = {
    "Debug": logging.DEBUG,
    "Trace": logging.DEBUG,
    "TraceAll": logging.DEBUG,
}


def is_managed(sources: StateSources) -> bool:
    """Check whether operand controllers should act.

    Raises:
        TransientLookupError: If the ClusterCSIDriver is not cached yet
    """
    return sources.operator_spec(strict=True).is_managed


class ManagementStateController:
    """Reports management states the operator does not support."""

    def __init__(self, name: str, sources: StateSources) -> None:
        self.name = name
        self.sources = sources

    def sync(self) -> str:
        """Validate spec.managementState.

        Raises:
            ConfigurationError: If the state is Removed or unknown
        """
        state = self.sources.operator_spec(strict=True).management_state
        if state == REMOVED:
            raise ConfigurationError(f"management state {REMOVED} is not supported")
        if state not in (MANAGED, UNMANAGED):
            raise ConfigurationError(f"unknown management state {state!r}")
        return state


class LogLevelController:
    """Makes the level of the operator's loggers follow spec.operatorLogLevel.

    Attributes:
        name: Controller name
        logger_name: Root logger of the operator
        default_level: Level used for Normal and unknown log levels
    """

    def __init__(
        self,
        name: str,
        sources: StateSources,
        logger_name: str = "ebs_operator",
        default_level: int = logging.INFO,
    ) -> None:
        self.name = name
        self.sources = sources
        self.logger_name = logger_name
        self.default_level = default_level

    def sync(self) -> int:
        log_level = self.sources.operator_spec(strict=True).operator_log_level
        level = OPERATOR_LOG_LEVELS.get(log_level, self.default_level)

        target = logging.getLogger(self.logger_name)
        if target.level != level:
            target.setLevel(level)
            logger.info(
                "Operator log level set to %s (%s)",
                logging.getLevelName(level),
                log_level,
                extra={"event": "log_level_changed"},
            )
        return level
