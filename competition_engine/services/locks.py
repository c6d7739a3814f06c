"""
Per-match serialization for mutating commands.
Process-local: one re-entrant lock per match id, created on first use.
"""
from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator

_registry_lock = threading.Lock()
_match_locks: dict[str, threading.RLock] = {}


def lock_for(match_id: str) -> threading.RLock:
    with _registry_lock:
        lock = _match_locks.get(match_id)
        if lock is None:
            lock = threading.RLock()
            _match_locks[match_id] = lock
        return lock


@contextmanager
def match_lock(match_id: str) -> Iterator[None]:
    """Hold the match's lock for the duration of one read-modify-write command."""
    with lock_for(match_id):
        yield


@contextmanager
def match_locks(match_ids: Iterable[str]) -> Iterator[None]:
    """Hold several matches' locks, always acquired in sorted id order."""
    with ExitStack() as stack:
        for match_id in sorted(set(match_ids)):
            stack.enter_context(lock_for(match_id))
        yield


def forget(match_id: str) -> None:
    """Drop the lock for a match that no longer exists (season teardown)."""
    with _registry_lock:
        _match_locks.pop(match_id, None)
