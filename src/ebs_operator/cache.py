"""In-memory object caches fed by informers.

An ObjectCache holds the last observed version of every object of one kind
in one namespace (or cluster-wide). Informers write to it from worker
threads; controllers read from it and subscribe to change notifications.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from ebs_operator.errors import TransientLookupError

logger = logging.getLogger(__name__)

ObjectKey = tuple[str, str]
Listener = Callable[[str, dict[str, Any]], None]


def object_key(obj: dict[str, Any]) -> ObjectKey:
    metadata = obj.get("metadata") or {}
    return metadata.get("namespace", ""), metadata.get("name", "")


class ObjectCache:
    """Thread-safe store of objects of a single kind.

    Attributes:
        kind: Object kind (for logs)
        namespace: Namespace watched, '' for cluster-wide
    """

    def __init__(self, kind: str, namespace: str = "") -> None:
        self.kind = kind
        self.namespace = namespace
        self._objects: dict[ObjectKey, dict[str, Any]] = {}
        self._listeners: list[Listener] = []
        self._synced = threading.Event()
        self._lock = threading.Lock()

    @property
    def synced(self) -> bool:
        return self._synced.is_set()

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked as listener(event_type, obj) on every change."""
        with self._lock:
            self._listeners.append(listener)

    def replace(self, objects: list[dict[str, Any]]) -> None:
        """Replace the whole content after a list, and mark the cache synced."""
        with self._lock:
            self._objects = {object_key(o): o for o in objects}
        self._synced.set()
        logger.debug("Cache %s/%s synced with %d object(s)", self.kind, self.namespace or "*", len(objects))
        self._notify("SYNCED", {})

    def upsert(self, obj: dict[str, Any], event_type: str = "MODIFIED") -> None:
        with self._lock:
            self._objects[object_key(obj)] = obj
        self._notify(event_type, obj)

    def delete(self, obj: dict[str, Any]) -> None:
        with self._lock:
            self._objects.pop(object_key(obj), None)
        self._notify("DELETED", obj)

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        """Get an object by name.

        Args:
            name: Object name
            namespace: Object namespace, defaults to the watched namespace

        Returns:
            The object, or None if it does not exist

        Raises:
            TransientLookupError: If the cache has not synced yet
        """
        if not self.synced:
            raise TransientLookupError(f"{self.kind} cache for {self.namespace or 'all namespaces'} has not synced yet")
        key = (self.namespace if namespace is None else namespace, name)
        with self._lock:
            return self._objects.get(key)

    def list(self) -> list[dict[str, Any]]:
        """List all objects.

        Raises:
            TransientLookupError: If the cache has not synced yet
        """
        if not self.synced:
            raise TransientLookupError(f"{self.kind} cache for {self.namespace or 'all namespaces'} has not synced yet")
        with self._lock:
            return list(self._objects.values())

    def _notify(self, event_type: str, obj: dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event_type, obj)
