# walkaround_server/services/admission_queue.py
"""FIFO of sessions waiting for a free player slot."""

from collections import deque
from typing import Deque, List, Tuple


class AdmissionQueue:
    """Strict FIFO of connection ids; no priorities."""

    def __init__(self):
        self._waiting: Deque[str] = deque()

    def enqueue(self, conn_id: str) -> int:
        """Append ``conn_id`` unless already queued; return its 1-based position."""
        if conn_id not in self._waiting:
            self._waiting.append(conn_id)
        return self.position_of(conn_id)

    def remove(self, conn_id: str) -> bool:
        """Remove ``conn_id`` wherever it sits. Later arrivals shift up."""
        try:
            self._waiting.remove(conn_id)
        except ValueError:
            return False
        return True

    def drain_to_capacity(self, current: int, maximum: int) -> List[str]:
        """Pop from the head while ``current + popped < maximum``."""
        popped = []
        while self._waiting and current + len(popped) < maximum:
            popped.append(self._waiting.popleft())
        return popped

    def positions_snapshot(self) -> List[Tuple[str, int]]:
        """Every queued id with its current 1-based position."""
        return [(conn_id, index) for index, conn_id in enumerate(self._waiting, start=1)]

    def position_of(self, conn_id: str) -> int:
        """1-based position of ``conn_id``, or 0 if it is not queued."""
        for index, queued in enumerate(self._waiting, start=1):
            if queued == conn_id:
                return index
        return 0

    def __contains__(self, conn_id: str) -> bool:
        return conn_id in self._waiting

    def __len__(self) -> int:
        return len(self._waiting)
