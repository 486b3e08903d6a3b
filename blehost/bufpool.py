"""A shared, flow-controlled pool of transmit buffers."""

from __future__ import annotations

import queue
import threading

__all__ = ["Pool", "PoolClient"]


class Pool:
    """A fixed number of equally sized buffers shared between clients.

    ``lock`` serialises multi-buffer transmissions across clients.
    """

    def __init__(self, size: int, count: int) -> None:
        self.size = size
        self.count = count
        self.lock = threading.Lock()
        self._free: "queue.Queue[bytearray]" = queue.Queue()
        for _ in range(max(count, 0)):
            self._free.put(bytearray(size))

    def __len__(self) -> int:
        """Number of buffers currently available in the pool."""
        return self._free.qsize()


class PoolClient:
    """Takes buffers from a pool and tracks those sent but not yet acknowledged."""

    def __init__(self, pool: Pool) -> None:
        self.pool = pool
        self._sent: "queue.Queue[bytearray]" = queue.Queue()

    def get(self) -> bytearray:
        """Take an emptied buffer from the pool, blocking until one is free."""
        b = self.pool._free.get()
        b.clear()
        self._sent.put(b)
        return b

    def put(self) -> None:
        """Return the oldest sent buffer to the pool, if any."""
        try:
            b = self._sent.get_nowait()
        except queue.Empty:
            return
        self.pool._free.put(b)

    def put_all(self) -> None:
        """Return every sent buffer to the pool."""
        while True:
            try:
                b = self._sent.get_nowait()
            except queue.Empty:
                return
            self.pool._free.put(b)