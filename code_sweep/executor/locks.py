"""Single-flight execution: one destructive run per project root."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from code_sweep.errors import ExecutionInProgressError

_registry: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def _lock_for(root: Path) -> threading.Lock:
    key = str(Path(root).resolve())
    with _registry_lock:
        lock = _registry.get(key)
        if lock is None:
            lock = _registry[key] = threading.Lock()
        return lock


def is_locked(root: Path) -> bool:
    return _lock_for(root).locked()


@contextmanager
def exclusive_root(root: Path) -> Iterator[None]:
    """Hold the execute lock for ``root``; fail fast if another run holds it."""
    lock = _lock_for(root)
    if not lock.acquire(blocking=False):
        raise ExecutionInProgressError(str(root))
    try:
        yield
    finally:
        lock.release()
