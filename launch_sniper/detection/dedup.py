from __future__ import annotations

import threading


def pool_key(address: str) -> str:
    return f"pool:{address.lower()}"


def token_key(address: str) -> str:
    return f"token:{address.lower()}"


class DedupStore:
    """Pool and token identities already acted on during this run.

    Grows monotonically and is never evicted: a pool seen once must never be
    traded again before the process restarts.
    """

    def __init__(self):
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def mark_and_check(self, key: str) -> bool:
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def seen(self, key: str) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)
