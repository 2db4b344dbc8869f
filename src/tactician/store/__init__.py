"""Backing document stores."""

from tactician.store.base import DocumentStore, write_document
from tactician.store.json_backend import JsonDocumentStore
from tactician.store.memory import InMemoryDocumentStore

__all__ = ["DocumentStore", "InMemoryDocumentStore", "JsonDocumentStore", "write_document"]
