"""Presentation-ready projection of the term table.

The projection is a pure function of a schema snapshot, a document snapshot,
a search query and a sort spec (`project`). `ViewEngine` wraps it with the
session's current query and sort state, plus a one-entry cache keyed on both
stores' revision counters, so every registry or store mutation invalidates
the cached rows.

Rows always carry one cell per *visible* column in schema order. A cell
whose term is missing or has no value displays the placeholder (``N/A`` by
default); the two cases differ only in ``cell.term`` being None or not.
"""

import csv
import io
import unicodedata
from enum import Enum
from typing import Sequence

from pydantic import BaseModel

from termgrid.column import Column
from termgrid.config import TermGridConfig
from termgrid.document import Document, DocumentStatus, Term
from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    """Sort by at most one column. The default sorts nothing (arrival order)."""

    model_config = {"frozen": True}

    column_id: str | None = None
    direction: SortDirection | None = None

    @property
    def active(self) -> bool:
        return self.column_id is not None and self.direction is not None

    def cycle(self, column_id: str) -> "SortSpec":
        """Next state after a click on ``column_id``'s header.

        The same column cycles ascending -> descending -> unsorted; a
        different column starts again at ascending.
        """
        if column_id != self.column_id or self.direction is None:
            return SortSpec(column_id=column_id, direction=SortDirection.ASC)
        if self.direction is SortDirection.ASC:
            return SortSpec(column_id=column_id, direction=SortDirection.DESC)
        return SortSpec()


class Drilldown(BaseModel):
    """Excerpt details shown when a cell is opened."""

    model_config = {"frozen": True}

    term_label: str
    value: str
    excerpt: str
    document_name: str


class Cell(BaseModel):
    model_config = {"frozen": True}

    column_id: str
    term: Term | None
    display: str
    drilldown: Drilldown | None = None

    @property
    def available(self) -> bool:
        return self.term is not None and self.term.has_value


class Row(BaseModel):
    model_config = {"frozen": True}

    document: Document
    cells: tuple[Cell, ...]

    def values(self) -> list[str]:
        return [cell.display for cell in self.cells]


class ViewStats(BaseModel):
    """Document counts per status for the dashboard header."""

    model_config = {"frozen": True}

    total: int = 0
    uploading: int = 0
    processing: int = 0
    completed: int = 0
    error: int = 0


def matches(document: Document, query: str) -> bool:
    """Case-insensitive substring match on the name or any term value."""
    if not query:
        return True
    needle = query.casefold()
    if needle in document.display_name.casefold():
        return True
    return any(term.value is not None and needle in term.value.casefold() for term in document.terms.values())


def _fold(text: str) -> str:
    """Strip accents and case: "Émile" and "emile" fold to the same string."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def sort_key(value: str | None) -> tuple[str, str, str]:
    """Collation key; missing and null values sort as the empty string.

    Letters compare by base character first, so accented names sort next to
    their unaccented neighbours instead of after "z". Accents, then case,
    only break ties.
    """
    text = value or ""
    return _fold(text), unicodedata.normalize("NFC", text).casefold(), text


def _cell(document: Document, column: Column, missing_value: str) -> Cell:
    term = document.terms.get(column.id)
    display = term.value if term is not None and term.value is not None else missing_value
    drilldown = None
    if term is not None and term.excerpt:
        drilldown = Drilldown(
            term_label=column.label,
            value=display,
            excerpt=term.excerpt,
            document_name=document.display_name,
        )
    return Cell(column_id=column.id, term=term, display=display, drilldown=drilldown)


def project(
    columns: Sequence[Column],
    documents: Sequence[Document],
    query: str = "",
    sort: SortSpec | None = None,
    missing_value: str = "N/A",
) -> list[Row]:
    """Filter, sort and lay out documents against the visible columns.

    ``documents`` must be in arrival order; that is the order kept when no
    sort is active. The filter looks at every term, visible or not.
    """
    visible = sorted((c for c in columns if c.visible), key=lambda c: c.order)
    selected = [doc for doc in documents if matches(doc, query)]
    if sort is not None and sort.active:
        column_id = sort.column_id

        def value_of(doc: Document) -> str | None:
            term = doc.terms.get(column_id)
            return term.value if term is not None else None

        selected.sort(
            key=lambda doc: sort_key(value_of(doc)),
            reverse=sort.direction is SortDirection.DESC,
        )
    return [Row(document=doc, cells=tuple(_cell(doc, c, missing_value) for c in visible)) for doc in selected]


def export_csv(
    rows: Sequence[Row],
    columns: Sequence[Column],
    document_label_header: str = "DocumentLabel",
) -> str:
    """Serialize rows as CSV in the order given.

    The header lists the document label then each visible column label;
    data cells are always double-quoted, with embedded quotes doubled.
    """
    visible = sorted((c for c in columns if c.visible), key=lambda c: c.order)
    buffer = io.StringIO()
    header = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    header.writerow([document_label_header, *(c.label for c in visible)])
    body = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        body.writerow([row.document.display_name, *row.values()])
    return buffer.getvalue().rstrip("\n")


class ViewEngine:
    """Stateful table view over a registry and a document store.

    Holds the current search query and sort spec the way the table widget
    does, and caches the last projection until either store changes.
    """

    def __init__(
        self,
        registry: SchemaRegistryInterface,
        store: DocumentStoreInterface,
        config: TermGridConfig | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.config = config or TermGridConfig()
        self.query = ""
        self.sort = SortSpec()
        self._cache_key: tuple | None = None
        self._cache_rows: list[Row] = []

    def search(self, query: str) -> None:
        self.query = query

    def click_header(self, column_id: str) -> SortSpec:
        self.sort = self.sort.cycle(column_id)
        return self.sort

    async def rows(self, query: str | None = None, sort: SortSpec | None = None) -> list[Row]:
        """Current rows; ``query``/``sort`` override the held state for this call."""
        query = self.query if query is None else query
        sort = self.sort if sort is None else sort
        key = (self.registry.revision, self.store.revision, query, sort)
        if key != self._cache_key:
            columns = await self.registry.list_columns()
            documents = await self.store.list()
            self._cache_rows = project(columns, documents, query, sort, self.config.missing_value)
            self._cache_key = key
        return list(self._cache_rows)

    async def visible_columns(self) -> list[Column]:
        return [c for c in await self.registry.list_columns() if c.visible]

    async def export(self, query: str | None = None, sort: SortSpec | None = None) -> str:
        """CSV of the rows as currently displayed (filtered and sorted)."""
        rows = await self.rows(query, sort)
        columns = await self.registry.list_columns()
        return export_csv(rows, columns, self.config.document_label_header)

    async def stats(self) -> ViewStats:
        counts = {status: 0 for status in DocumentStatus}
        documents = await self.store.list()
        for document in documents:
            counts[document.status] += 1
        return ViewStats(
            total=len(documents),
            uploading=counts[DocumentStatus.UPLOADING],
            processing=counts[DocumentStatus.PROCESSING],
            completed=counts[DocumentStatus.COMPLETED],
            error=counts[DocumentStatus.ERROR],
        )
