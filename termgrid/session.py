"""Per-organization session wiring the whole engine together.

A `ContractSession` owns one schema registry, one document store, the
extraction orchestrator, the schema evolution coordinator and the view. All
state lives on the session object; nothing is module-global, so two sessions
never see each other's documents.

Example:
    ```python
    session = await ContractSession.rehydrate(
        records,
        text_extractor=my_ocr_backend,
        term_extractor=LLMTermExtractor(config.llm),
        config=config,
    )
    await session.upload([SourceFile(filename="a.pdf", mime_type="application/pdf", content=data)])
    if session.pending_suggestion is not None:
        await session.accept_suggestion(session.pending_suggestion.candidate_id)
    csv_text = await session.export()
    ```
"""

from typing import Any, Iterable, Mapping, Sequence

from termgrid.column import DEFAULT_COLUMNS, Column, ColumnDefinition
from termgrid.config import TermGridConfig
from termgrid.document import Document, DocumentStatus, SourceFile
from termgrid.evolution import BackfillReport, SchemaEvolutionCoordinator
from termgrid.errors import UnknownColumn
from termgrid.ingest import BatchResult, ExtractionOrchestrator
from termgrid.logging import get_logger
from termgrid.persistence import DurableDocumentRecord, document_from_record
from termgrid.pipeline.interfaces import (
    SourceLoaderInterface,
    TermExtractorInterface,
    TextExtractorInterface,
)
from termgrid.pipeline.text import InMemorySourceLoader
from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface
from termgrid.storage.memory import InMemoryDocumentStore, InMemorySchemaRegistry
from termgrid.suggestion import Suggestion
from termgrid.view import Row, SortSpec, ViewEngine, ViewStats

logger = get_logger(__name__)


class ContractSession:
    """Single owner of all mutable state for one organization."""

    def __init__(
        self,
        text_extractor: TextExtractorInterface,
        term_extractor: TermExtractorInterface,
        config: TermGridConfig | None = None,
        registry: SchemaRegistryInterface | None = None,
        store: DocumentStoreInterface | None = None,
        source_loader: SourceLoaderInterface | None = None,
    ) -> None:
        self.config = config or TermGridConfig()
        self.registry = registry or InMemorySchemaRegistry(DEFAULT_COLUMNS)
        self.store = store or InMemoryDocumentStore()
        self.orchestrator = ExtractionOrchestrator(
            registry=self.registry,
            store=self.store,
            text_extractor=text_extractor,
            term_extractor=term_extractor,
            source_loader=source_loader or InMemorySourceLoader(),
            config=self.config,
        )
        self.coordinator = SchemaEvolutionCoordinator(
            registry=self.registry,
            store=self.store,
            orchestrator=self.orchestrator,
            capacity=self.config.suggestion_queue_capacity,
            backfill_concurrency=self.config.backfill_concurrency,
        )
        self.orchestrator.suggestion_sink = self.coordinator.offer
        self.view = ViewEngine(self.registry, self.store, self.config)

    @classmethod
    async def rehydrate(
        cls,
        records: Iterable[DurableDocumentRecord | Mapping[str, Any]],
        *,
        text_extractor: TextExtractorInterface,
        term_extractor: TermExtractorInterface,
        columns: Sequence[ColumnDefinition] = DEFAULT_COLUMNS,
        config: TermGridConfig | None = None,
        source_loader: SourceLoaderInterface | None = None,
    ) -> "ContractSession":
        """Build a session from stored records, all marked ``completed``.

        Term keys that no column in ``columns`` covers (columns accepted in
        an earlier session) are registered with their id as the label, so
        every document's terms stay within the schema.
        """
        session = cls(
            text_extractor,
            term_extractor,
            config=config,
            registry=InMemorySchemaRegistry(columns),
            source_loader=source_loader,
        )
        for record in records:
            document = document_from_record(record)
            for column_id in document.terms:
                if await session.registry.get(column_id) is None:
                    logger.info("Registering column %s found in stored terms", column_id)
                    await session.registry.add_column(ColumnDefinition(id=column_id, label=column_id))
            await session.store.create_pending(document.model_copy(update={"status": DocumentStatus.PROCESSING}))
            await session.store.record_success(document.id, document.terms)
        logger.info("Rehydrated session with %d documents", await session.store.count())
        return session

    # --- Uploads ---

    async def upload(self, files: Sequence[SourceFile]) -> BatchResult:
        return await self.orchestrator.upload_batch(files)

    async def documents(self) -> list[Document]:
        return await self.store.list()

    # --- Columns ---

    async def columns(self) -> list[Column]:
        return await self.registry.list_columns()

    async def set_column_visibility(self, column_id: str, visible: bool) -> None:
        await self.registry.set_visibility(column_id, visible)

    async def toggle_column(self, column_id: str) -> Column:
        """Flip a column's visibility and return the updated column."""
        column = await self.registry.get(column_id)
        if column is None:
            raise UnknownColumn(column_id)
        await self.registry.set_visibility(column_id, not column.visible)
        return await self.registry.get(column_id)

    # --- Suggestions ---

    @property
    def pending_suggestion(self) -> Suggestion | None:
        return self.coordinator.pending

    async def accept_suggestion(self, candidate_id: str | None = None) -> BackfillReport:
        return await self.coordinator.accept(candidate_id)

    async def dismiss_suggestion(self, candidate_id: str | None = None) -> Suggestion:
        return await self.coordinator.dismiss(candidate_id)

    # --- View ---

    def search(self, query: str) -> None:
        self.view.search(query)

    def click_header(self, column_id: str) -> SortSpec:
        return self.view.click_header(column_id)

    async def rows(self) -> list[Row]:
        return await self.view.rows()

    async def export(self) -> str:
        return await self.view.export()

    async def stats(self) -> ViewStats:
        return await self.view.stats()
