"""In-memory schema registry and document store.

Both stores keep their state in dictionaries owned by a single session and
serialize every mutation through an ``asyncio.Lock``. Readers receive frozen
snapshots (pydantic models are immutable), so a projection computed from a
snapshot stays consistent even while uploads keep completing.

Locks are never held across a collaborator call: callers read what they need,
release, await the collaborator, then call back in to write the result.

Each store carries a ``revision`` counter. It is bumped only when a mutation
changes observable state, so replaying an identical call leaves it alone.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Mapping

from termgrid.column import Column, ColumnDefinition
from termgrid.document import Document, DocumentStatus, Term
from termgrid.errors import (
    DuplicateColumnId,
    DuplicateColumnOrder,
    DuplicateDocumentId,
    UnknownColumn,
    UnknownDocument,
)
from termgrid.logging import get_logger
from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface

logger = get_logger(__name__)


class InMemorySchemaRegistry(SchemaRegistryInterface):
    """Column registry backed by a dict keyed by column id.

    Example:
        ```python
        registry = InMemorySchemaRegistry(DEFAULT_COLUMNS)
        await registry.add_column(ColumnDefinition(id="signingBonus", label="Signing Bonus"))
        columns = await registry.list_columns()
        ```
    """

    def __init__(self, seed: Iterable[ColumnDefinition] = ()) -> None:
        self._columns: dict[str, Column] = {}
        self._lock = asyncio.Lock()
        self._revision = 0
        for definition in seed:
            self._insert(definition)

    @property
    def revision(self) -> int:
        return self._revision

    def _order_holder(self, order: int, exclude: str | None = None) -> Column | None:
        for column in self._columns.values():
            if column.order == order and column.id != exclude:
                return column
        return None

    def _insert(self, definition: ColumnDefinition) -> Column:
        if definition.id in self._columns:
            raise DuplicateColumnId(definition.id)
        if definition.order is None:
            order = max((c.order for c in self._columns.values()), default=-1) + 1
        else:
            order = definition.order
            holder = self._order_holder(order)
            if holder is not None:
                raise DuplicateColumnOrder(order, holder.id)
        column = Column(
            id=definition.id,
            label=definition.label,
            description=definition.description,
            visible=definition.visible,
            order=order,
        )
        self._columns[column.id] = column
        self._revision += 1
        return column

    async def list_columns(self) -> list[Column]:
        return sorted(self._columns.values(), key=lambda c: c.order)

    async def get(self, column_id: str) -> Column | None:
        return self._columns.get(column_id)

    async def add_column(self, definition: ColumnDefinition) -> Column:
        async with self._lock:
            column = self._insert(definition)
        logger.info("Added column %s (%r) at order %d", column.id, column.label, column.order)
        return column

    async def set_visibility(self, column_id: str, visible: bool) -> None:
        async with self._lock:
            column = self._columns.get(column_id)
            if column is None:
                raise UnknownColumn(column_id)
            if column.visible == visible:
                return
            self._columns[column_id] = column.model_copy(update={"visible": visible})
            self._revision += 1

    async def set_order(self, column_id: str, order: int) -> None:
        async with self._lock:
            column = self._columns.get(column_id)
            if column is None:
                raise UnknownColumn(column_id)
            if column.order == order:
                return
            holder = self._order_holder(order, exclude=column_id)
            if holder is not None:
                raise DuplicateColumnOrder(order, holder.id)
            self._columns[column_id] = column.model_copy(update={"order": order})
            self._revision += 1


class InMemoryDocumentStore(DocumentStoreInterface):
    """Document store backed by an insertion-ordered dict keyed by document id.

    Dict insertion order doubles as arrival order, which is what the view
    falls back to when no sort is active.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = asyncio.Lock()
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    def _require(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise UnknownDocument(document_id)
        return document

    def _replace(self, document: Document) -> None:
        self._documents[document.id] = document
        self._revision += 1

    async def create_pending(self, document: Document) -> None:
        if document.status.is_terminal:
            raise ValueError(f"New documents must be pending, got {document.status.value}")
        async with self._lock:
            if document.id in self._documents:
                raise DuplicateDocumentId(document.id)
            self._replace(document)

    async def mark_processing(self, document_id: str) -> None:
        async with self._lock:
            document = self._require(document_id)
            if document.status is DocumentStatus.UPLOADING:
                self._replace(document.model_copy(update={"status": DocumentStatus.PROCESSING}))

    async def record_success(self, document_id: str, terms: Mapping[str, Term]) -> None:
        new_terms = dict(terms)
        async with self._lock:
            document = self._require(document_id)
            if document.status.is_terminal:
                if document.status is not DocumentStatus.COMPLETED or dict(document.terms) != new_terms:
                    logger.warning(
                        "Ignoring success for %s: already %s",
                        document_id,
                        document.status.value,
                    )
                return
            self._replace(
                document.model_copy(
                    update={"status": DocumentStatus.COMPLETED, "terms": new_terms, "error_detail": None}
                )
            )

    async def record_failure(self, document_id: str, error_detail: str) -> None:
        async with self._lock:
            document = self._require(document_id)
            if document.status.is_terminal:
                if document.status is not DocumentStatus.ERROR or document.error_detail != error_detail:
                    logger.warning(
                        "Ignoring failure for %s: already %s",
                        document_id,
                        document.status.value,
                    )
                return
            self._replace(
                document.model_copy(update={"status": DocumentStatus.ERROR, "error_detail": error_detail})
            )

    async def merge_term(self, document_id: str, column_id: str, term: Term) -> None:
        async with self._lock:
            document = self._require(document_id)
            if document.terms.get(column_id) == term:
                return
            terms = dict(document.terms)
            terms[column_id] = term
            self._replace(document.model_copy(update={"terms": terms}))

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def list(self) -> list[Document]:
        return list(self._documents.values())
