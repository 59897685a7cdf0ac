from itertools import count
from threading import RLock
from typing import Any, Iterator

ENTITY_KINDS = ("users", "categories", "transactions", "goals", "events", "accounts")


class InMemoryStore:
    """Process-wide entity collections with one id counter and one lock per kind."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[int, dict[str, Any]]] = {}
        self.locks: dict[str, RLock] = {kind: RLock() for kind in ENTITY_KINDS}
        self._counters: dict[str, Iterator[int]] = {}
        self.reset()

    def reset(self) -> None:
        """Drop every row and restart the id counters, as a fresh process would."""
        for kind in ENTITY_KINDS:
            with self.locks[kind]:
                self.collections[kind] = {}
                self._counters[kind] = count(1)

    def make_id(self, kind: str) -> int:
        return next(self._counters[kind])


store = InMemoryStore()
