"""Schema registry and document store backends."""

from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface
from termgrid.storage.memory import InMemoryDocumentStore, InMemorySchemaRegistry

__all__ = [
    "SchemaRegistryInterface",
    "DocumentStoreInterface",
    "InMemorySchemaRegistry",
    "InMemoryDocumentStore",
]
