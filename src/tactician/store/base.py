"""Abstract base for backing document stores."""

from abc import ABC, abstractmethod
from typing import Any

from tactician.core.errors import StoreWriteError


class DocumentStore(ABC):
    """Key-addressed store of JSON-shaped documents.

    One document per logical collection: telemetry history, patterns of one
    type, the experience list, the learning log. Keys may contain ``/`` to
    group related documents (``patterns/tool-patterns``).
    """

    @abstractmethod
    async def read(self, key: str) -> Any | None:
        """Read a document.

        Args:
            key: Document key.

        Returns:
            The decoded document, or None if it is missing or unreadable.
        """
        ...

    @abstractmethod
    async def write(self, key: str, document: Any) -> None:
        """Persist a document, replacing any previous version.

        Args:
            key: Document key.
            document: JSON-serializable document.

        Raises:
            OSError: If the document could not be written.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a document.

        Returns:
            True if deleted, False if not found.
        """
        ...


async def write_document(store: DocumentStore, key: str, document: Any) -> None:
    """Write a document immediately, translating I/O failures.

    Raises:
        StoreWriteError: If the store reports an OSError.
    """
    try:
        await store.write(key, document)
    except OSError as e:
        raise StoreWriteError(key, str(e)) from e
