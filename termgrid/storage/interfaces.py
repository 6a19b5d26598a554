"""Storage interface definitions for the schema registry and document store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from termgrid.column import Column, ColumnDefinition
from termgrid.document import Document, DocumentStatus, Term


class SchemaRegistryInterface(ABC):
    """Abstract interface for the ordered set of known columns.

    Columns only accumulate; there is no delete operation.
    """

    @property
    @abstractmethod
    def revision(self) -> int:
        """Counter bumped on every successful mutation.

        Projections cached against an older revision are stale.
        """

    @abstractmethod
    async def list_columns(self) -> list[Column]:
        """Return every column sorted by ``order``."""

    @abstractmethod
    async def get(self, column_id: str) -> Column | None:
        """Retrieve a column by id, or None if not registered."""

    @abstractmethod
    async def add_column(self, definition: ColumnDefinition) -> Column:
        """Register a new column.

        Appends after the current maximum ``order`` unless the definition
        carries one.

        Raises:
            DuplicateColumnId: If the id is already registered.
            DuplicateColumnOrder: If an explicit order is already taken.
        """

    @abstractmethod
    async def set_visibility(self, column_id: str, visible: bool) -> None:
        """Show or hide a column. Idempotent; never changes ``order``.

        Raises:
            UnknownColumn: If the id is not registered.
        """

    @abstractmethod
    async def set_order(self, column_id: str, order: int) -> None:
        """Move a column to a new position.

        Raises:
            UnknownColumn: If the id is not registered.
            DuplicateColumnOrder: If another column already uses ``order``.
        """

    async def column_ids(self) -> list[str]:
        """Return registered column ids in schema order."""
        return [column.id for column in await self.list_columns()]


class DocumentStoreInterface(ABC):
    """Abstract interface for uploaded documents and their extracted terms.

    Every mutation must be idempotent under identical input, since retried
    collaborator calls can replay a result.
    """

    @property
    @abstractmethod
    def revision(self) -> int:
        """Counter bumped on every mutation that changed observable state."""

    @abstractmethod
    async def create_pending(self, document: Document) -> None:
        """Insert a new document in ``uploading`` or ``processing`` status.

        Raises:
            DuplicateDocumentId: If the id is already present.
            ValueError: If the document is not in a pending status.
        """

    @abstractmethod
    async def mark_processing(self, document_id: str) -> None:
        """Move an ``uploading`` document to ``processing``; no-op otherwise.

        Raises:
            UnknownDocument: If the id is not present.
        """

    @abstractmethod
    async def record_success(self, document_id: str, terms: Mapping[str, Term]) -> None:
        """Mark a document ``completed`` and replace its full terms mapping.

        A document that is already terminal is never moved back.

        Raises:
            UnknownDocument: If the id is not present.
        """

    @abstractmethod
    async def record_failure(self, document_id: str, error_detail: str) -> None:
        """Mark a document ``error`` with a human-readable reason.

        Raises:
            UnknownDocument: If the id is not present.
        """

    @abstractmethod
    async def merge_term(self, document_id: str, column_id: str, term: Term) -> None:
        """Set or overwrite exactly one term, leaving status and other terms alone.

        Raises:
            UnknownDocument: If the id is not present.
        """

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Retrieve a document by id, or None if not present."""

    @abstractmethod
    async def list(self) -> list[Document]:
        """Return all documents in arrival order."""

    async def list_by_status(self, status: DocumentStatus) -> list[Document]:
        """Return documents currently in ``status``, in arrival order."""
        return [doc for doc in await self.list() if doc.status is status]

    async def count(self) -> int:
        """Return total number of stored documents."""
        return len(await self.list())
