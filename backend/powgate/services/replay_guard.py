"""Single-use ledger of consumed challenge signatures."""

import threading
import time


class ReplayGuard:
    """
    In-memory set of consumed signatures, each kept until its challenge expires.

    Per-process only: behind several workers a replay can land on a worker
    that has not seen the signature.
    """

    def __init__(self):
        self._consumed: dict[str, int] = {}
        self._lock = threading.Lock()

    def consume(self, signature: str, expires_at: int) -> bool:
        """Record signature. Returns False if it was already consumed."""
        with self._lock:
            if signature in self._consumed:
                return False
            self._consumed[signature] = expires_at
            return True

    def purge_expired(self, now: float | None = None) -> int:
        """Drop entries whose challenge has expired. Returns count removed."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [sig for sig, expires_at in self._consumed.items() if expires_at < now]
            for sig in expired:
                del self._consumed[sig]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)
