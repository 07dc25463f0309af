"""Per-controller operator conditions.

OperatorStatus collects one `<Controller>Degraded` condition per control loop
in memory. StatusController publishes them to status.conditions of the
ClusterCSIDriver, next to the conditions other writers keep there.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ebs_operator.kube import OperatorClient
    from ebs_operator.snapshot import StateSources

logger = logging.getLogger(__name__)

DEGRADED = "Degraded"

TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class Condition:
    """A single status condition of one controller.

    Attributes:
        type: Condition type, e.g. "DeploymentControllerDegraded"
        status: "True" or "False"
        reason: CamelCase reason
        message: Human readable detail
        last_transition_time: When status last changed
    """

    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: datetime | None = None

    def to_dict(self) -> dict[str, str]:
        """Serialize as an operator.openshift.io OperatorCondition. Empty fields are omitted."""
        data = {"type": self.type, "status": self.status}
        if self.last_transition_time is not None:
            data["lastTransitionTime"] = self.last_transition_time.strftime(TIME_FORMAT)
        if self.reason:
            data["reason"] = self.reason
        if self.message:
            data["message"] = self.message
        return data


class OperatorStatus:
    """Thread-safe collection of conditions, keyed by condition type."""

    def __init__(self) -> None:
        self._conditions: dict[str, Condition] = {}
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @staticmethod
    def degraded_type(controller: str) -> str:
        return f"{controller}{DEGRADED}"

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked whenever a condition changes."""
        with self._lock:
            self._listeners.append(listener)

    def _set(self, condition: Condition) -> None:
        with self._lock:
            current = self._conditions.get(condition.type)
            transitioned = current is None or current.status != condition.status
            if transitioned:
                updated = replace(condition, last_transition_time=datetime.now(timezone.utc))
            else:
                updated = replace(condition, last_transition_time=current.last_transition_time)
            self._conditions[condition.type] = updated
            listeners = list(self._listeners) if updated != current else []

        for listener in listeners:
            listener()
        if not transitioned:
            return

        if condition.status == "True":
            logger.warning(
                "%s=True: %s",
                condition.type,
                condition.message,
                extra={"event": "condition_changed", "condition": condition.type},
            )
        else:
            logger.info("%s=False", condition.type, extra={"event": "condition_changed", "condition": condition.type})

    def set_degraded(self, controller: str, error: BaseException) -> None:
        """Mark a controller degraded because of error."""
        self._set(
            Condition(
                type=self.degraded_type(controller),
                status="True",
                reason=type(error).__name__,
                message=str(error),
            )
        )

    def set_available(self, controller: str) -> None:
        """Clear the degraded condition of a controller."""
        self._set(Condition(type=self.degraded_type(controller), status="False", reason="AsExpected"))

    def conditions(self) -> list[Condition]:
        with self._lock:
            return sorted(self._conditions.values(), key=lambda c: c.type)

    def degraded(self) -> list[str]:
        """Get the types of every condition currently degraded."""
        return [c.type for c in self.conditions() if c.status == "True"]

    def is_ready(self) -> bool:
        return not self.degraded()


class StatusController:
    """Writes the conditions of an OperatorStatus to the operator resource.

    Attributes:
        name: Controller name
        status: Conditions to publish
        sources: Caches holding the current ClusterCSIDriver
        client: Writer for the ClusterCSIDriver status
    """

    def __init__(self, name: str, status: OperatorStatus, sources: StateSources, client: OperatorClient) -> None:
        self.name = name
        self.status = status
        self.sources = sources
        self.client = client

    def desired_conditions(self, current: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Merge our conditions into the current list, keeping the others in place."""
        ours = {c.type: c.to_dict() for c in self.status.conditions()}
        merged = [c for c in current if c.get("type") not in ours]
        merged.extend(ours[t] for t in sorted(ours))
        return merged

    def sync(self) -> bool:
        """Patch status.conditions if they differ.

        Returns:
            True if the status was patched

        Raises:
            TransientLookupError: If the ClusterCSIDriver is not cached yet
        """
        obj = self.sources.operator_object()
        current = list((obj.get("status") or {}).get("conditions") or [])
        desired = self.desired_conditions(current)
        if desired == current:
            return False

        self.client.patch_status({"conditions": desired})
        logger.debug("%s published %d condition(s)", self.name, len(desired))
        return True
