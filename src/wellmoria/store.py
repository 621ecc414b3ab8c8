"""Remote realtime data store interface and an in-memory implementation.

Every service talks to the store through five operations:

    get(path)                    one-shot read, None when absent
    set(path, value)             full overwrite (None deletes)
    update(path, fields)         narrow write of the named children only
    transaction(path, fn)        atomic read-modify-write, returns new value
    on_value(path, callback)     realtime listener, returns an unsubscribe

on_value callbacks always receive the whole node at 'path', once right away
and again after each change, so listeners never diff.
"""

import copy
import logging
import threading
from typing import Any, Callable, Optional, Protocol

from .errors import TransientWriteFailure

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]
Listener = Callable[[Any], None]


def split_path(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


class RealtimeStore(Protocol):
    """Path-addressed realtime database."""

    def get(self, path: str) -> Any: ...

    def set(self, path: str, value: Any) -> None: ...

    def update(self, path: str, fields: dict) -> None: ...

    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any: ...

    def on_value(self, path: str, callback: Listener) -> Unsubscribe: ...


def _prune(value: Any) -> Any:
    """Drop None children and empty objects, as the realtime database does."""
    if isinstance(value, dict):
        pruned = {str(k): _prune(v) for k, v in value.items()}
        pruned = {k: v for k, v in pruned.items() if v is not None}
        return pruned or None
    return value


class MemoryStore:
    """In-process realtime store with the same semantics as the Firebase one.

    Useful offline and in tests. Writes can be made to fail with
    'fail_writes' (everything) or 'fail_paths' (path prefixes).

    Usage:
        store = MemoryStore()
        stop = store.on_value("users/u1/today", print)
        store.update("users/u1/today", {"steps": 10})
        stop()
    """

    def __init__(self, data: Optional[dict] = None):
        self._root: dict = _prune(copy.deepcopy(data or {})) or {}
        self._lock = threading.RLock()
        self._listeners: dict[int, tuple[list[str], Listener]] = {}
        self._next_id = 0
        self.fail_writes = False
        self.fail_paths: set[str] = set()
        self.writes: list[tuple[str, str]] = []

    # =========================================================================
    # Reads
    # =========================================================================

    def _read(self, parts: list[str]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._read(split_path(path)))

    # =========================================================================
    # Writes
    # =========================================================================

    def _check_writable(self, path: str) -> None:
        normalized = "/".join(split_path(path))
        if self.fail_writes or any(
            normalized == p or normalized.startswith(p.rstrip("/") + "/") for p in self.fail_paths
        ):
            raise TransientWriteFailure(normalized, ConnectionError("simulated write failure"))

    def _write(self, parts: list[str], value: Any) -> None:
        value = _prune(copy.deepcopy(value))
        if not parts:
            self._root = value if isinstance(value, dict) else {}
            return

        node = self._root
        trail = []
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[part] = child
            trail.append((node, part))
            node = child

        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

        # Empty parents disappear.
        for parent, key in reversed(trail):
            if parent[key]:
                break
            del parent[key]

    def set(self, path: str, value: Any) -> None:
        self._check_writable(path)
        parts = split_path(path)
        with self._lock:
            self._write(parts, value)
            self.writes.append(("set", "/".join(parts)))
        self._notify(parts)

    def update(self, path: str, fields: dict) -> None:
        if not fields:
            raise ValueError("update() needs at least one field")
        self._check_writable(path)
        parts = split_path(path)
        with self._lock:
            for key, value in fields.items():
                self._write(parts + split_path(key), value)
            self.writes.append(("update", "/".join(parts)))
        self._notify(parts)

    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any:
        self._check_writable(path)
        parts = split_path(path)
        with self._lock:
            current = copy.deepcopy(self._read(parts))
            new_value = fn(current)
            self._write(parts, new_value)
            self.writes.append(("transaction", "/".join(parts)))
            result = copy.deepcopy(self._read(parts))
        self._notify(parts)
        return result

    # =========================================================================
    # Listeners
    # =========================================================================

    def on_value(self, path: str, callback: Listener) -> Unsubscribe:
        parts = split_path(path)
        with self._lock:
            listener_id = self._next_id
            self._next_id += 1
            self._listeners[listener_id] = (parts, callback)

        callback(self.get(path))

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _notify(self, written: list[str]) -> None:
        with self._lock:
            affected = [
                (parts, callback)
                for parts, callback in self._listeners.values()
                if parts[: len(written)] == written or written[: len(parts)] == parts
            ]
        for parts, callback in affected:
            callback(self.get("/".join(parts)))
