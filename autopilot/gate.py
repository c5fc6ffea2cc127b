"""Debounce gate - one "redeploy in flight" flag per project token.

GitHub sends several package publish events for a single workflow run, all at
once. The gate lets exactly one of them through; the rest are dropped, not
queued.
"""
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator


class _Cell:
    __slots__ = ("lock", "held")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.held = False


class DebounceGate:
    """Per-token mutual exclusion. Check-and-set never awaits."""

    def __init__(self, tokens: Iterable[str]):
        # Fixed at construction; only the flags change afterwards
        self._cells = {token: _Cell() for token in tokens}

    def try_acquire(self, token: str) -> bool:
        """Claim the gate. Returns False if a redeploy is already running."""
        cell = self._cells[token]
        with cell.lock:
            if cell.held:
                return False
            cell.held = True
            return True

    def release(self, token: str) -> None:
        cell = self._cells[token]
        with cell.lock:
            cell.held = False

    def is_held(self, token: str) -> bool:
        cell = self._cells[token]
        with cell.lock:
            return cell.held

    @contextmanager
    def released_on_exit(self, token: str) -> Iterator[None]:
        """Release an already-acquired gate when the block exits, however it exits."""
        try:
            yield
        finally:
            self.release(token)
