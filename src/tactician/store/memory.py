"""In-memory document store.

Stores documents in a dict without filesystem I/O. Used by tests and by
callers that want an ephemeral engine. Documents are deep-copied on the way in
and out so callers cannot mutate stored state by reference.
"""

import copy
from typing import Any

from tactician.store.base import DocumentStore


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store.

    ``writes`` counts successful writes per key; ``fail_writes`` makes every
    write raise, which lets tests exercise write-failure paths.
    """

    def __init__(self) -> None:
        self.documents: dict[str, Any] = {}
        self.writes: dict[str, int] = {}
        self.fail_writes: OSError | None = None

    @property
    def total_writes(self) -> int:
        return sum(self.writes.values())

    async def read(self, key: str) -> Any | None:
        if key not in self.documents:
            return None
        return copy.deepcopy(self.documents[key])

    async def write(self, key: str, document: Any) -> None:
        if self.fail_writes is not None:
            raise self.fail_writes
        self.documents[key] = copy.deepcopy(document)
        self.writes[key] = self.writes.get(key, 0) + 1

    async def delete(self, key: str) -> bool:
        if key in self.documents:
            del self.documents[key]
            return True
        return False
