"""Striped per-key locks for read-modify-write cycles on sketches.

Loading a sketch, raising registers and saving it back is not atomic at
the backend, so two writers on one key must not interleave. Keys map to a
fixed set of lock stripes via ``hash32(key) & (N - 1)``. Multi-key
operations take every stripe they touch in ascending stripe order, which
keeps concurrent unions from deadlocking each other.
"""
from __future__ import annotations
import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional
from cardinal.lib.errors import StoreTimeout
from cardinal.lib.hashing import hash32

log = logging.getLogger(__name__)


class StripedKeyLock:
    """Mutual exclusion per key, spread across N stripes.

    Args:
        num_stripes: Number of lock stripes (default 16, must be power of 2).
        timeout: Seconds to wait for all stripes of one hold, None to wait forever.
    """

    def __init__(self, num_stripes: int = 16, timeout: Optional[float] = None) -> None:
        if num_stripes <= 0 or (num_stripes & (num_stripes - 1)) != 0:
            raise ValueError("num_stripes must be a positive power of 2")
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be non-negative")
        self._num_stripes = num_stripes
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(num_stripes)]
        self._mask = num_stripes - 1
        self.timeout = timeout

    @property
    def num_stripes(self) -> int:
        return self._num_stripes

    def stripe_index(self, key: str) -> int:
        return hash32(key.encode("utf-8")) & self._mask

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hold the stripes of all keys for the duration of the block.

        Raises:
            StoreTimeout: If a stripe could not be acquired within the timeout
        """
        stripes = sorted({self.stripe_index(k) for k in keys})
        acquired: List[int] = []
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        try:
            for idx in stripes:
                if deadline is None:
                    self._locks[idx].acquire()
                elif not self._locks[idx].acquire(timeout=max(0.0, deadline - time.monotonic())):
                    log.warning("Timed out after %.3fs waiting for keys %s", self.timeout, keys)
                    raise StoreTimeout(f"Timed out waiting for exclusive access to {', '.join(keys)}")
                acquired.append(idx)
            yield
        finally:
            for idx in reversed(acquired):
                self._locks[idx].release()
