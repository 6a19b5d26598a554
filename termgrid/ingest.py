"""Extraction orchestrator: upload -> text extraction -> term extraction -> store.

This module provides `ExtractionOrchestrator`, which drives each uploaded
file through the two-stage pipeline and records the outcome in the document
store:

**Stage 1 - Text extraction:**
    The `TextExtractorInterface` collaborator turns file bytes into plain text.

**Stage 2 - Term extraction:**
    The `TermExtractorInterface` collaborator turns text into terms for the
    known columns, plus optional suggestions for new columns.

A failure at either stage, including a timeout, becomes a single
``record_failure`` on the document. Collaborator errors never escape
`ExtractionOrchestrator.process_document`; callers read the outcome from the
returned `ProcessOutcome` or from the document's status.

Documents in a batch run as independent asyncio tasks, so one slow or failing
file neither blocks nor aborts the others.

Example usage:
    ```python
    orchestrator = ExtractionOrchestrator(
        registry=registry,
        store=store,
        text_extractor=PlainTextExtractor(),
        term_extractor=LLMTermExtractor(),
    )
    result = await orchestrator.upload_batch([SourceFile(...), SourceFile(...)])
    print(f"{result.completed} completed, {result.failed} failed")
    ```
"""

import asyncio
import uuid
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Coroutine, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from termgrid.column import Column
from termgrid.config import TermGridConfig
from termgrid.document import Document, DocumentStatus, SourceFile, Term
from termgrid.errors import (
    CollaboratorError,
    CollaboratorTimeout,
    TermExtractionFailed,
    TextExtractionFailed,
    UnsupportedMimeType,
)
from termgrid.logging import get_logger
from termgrid.pipeline.interfaces import (
    SourceLoaderInterface,
    TermExtraction,
    TermExtractorInterface,
    TextExtractorInterface,
)
from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface
from termgrid.suggestion import Suggestion

logger = get_logger(__name__)

SuggestionSink = Callable[[Suggestion], Awaitable[bool]]
"""Receives the forwarded suggestion; returns whether it was kept."""


class ProcessOutcome(BaseModel):
    """Result of running one document through the pipeline.

    Attributes:
        document_id: The document that was processed.
        status: Final status (``completed`` or ``error``).
        terms: Terms recorded for the document (empty on failure).
        suggestion: The one suggestion forwarded to the coordinator, if any.
        suggestion_kept: Whether the coordinator kept it (live or queued).
        failed_stage: ``"text"`` or ``"term"`` when the pipeline failed.
        error_detail: Human-readable failure reason.
    """

    model_config = {"frozen": True}

    document_id: str
    status: DocumentStatus
    terms: Mapping[str, Term] = Field(default_factory=dict)
    suggestion: Suggestion | None = None
    suggestion_kept: bool = False
    failed_stage: Literal["text", "term"] | None = None
    error_detail: str | None = None


class RejectedUpload(BaseModel):
    """A file refused before any document was created for it."""

    model_config = {"frozen": True}

    filename: str
    mime_type: str
    reason: str


class BatchResult(BaseModel):
    """Result of a multi-file upload.

    ``outcomes`` is in upload order, not completion order.
    """

    model_config = {"frozen": True}

    outcomes: tuple[ProcessOutcome, ...] = ()
    rejected: tuple[RejectedUpload, ...] = ()

    @property
    def completed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DocumentStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DocumentStatus.ERROR)


class ExtractionOrchestrator(BaseModel):
    """Runs the text + term extraction pipeline and records results.

    Attributes:
        registry: Source of the current column ids.
        store: Where document status and terms are recorded.
        text_extractor: File -> plain text collaborator.
        term_extractor: Plain text -> terms collaborator.
        source_loader: Fetches original files for documents whose text is
            not cached (rehydrated or evicted ones) when a backfill needs them.
        config: Deadlines and accepted MIME types.
        suggestion_sink: Receives at most one suggestion per processed
            document; usually `SchemaEvolutionCoordinator.offer`.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    registry: SchemaRegistryInterface
    store: DocumentStoreInterface
    text_extractor: TextExtractorInterface
    term_extractor: TermExtractorInterface
    source_loader: SourceLoaderInterface | None = None
    config: TermGridConfig = Field(default_factory=TermGridConfig)
    suggestion_sink: SuggestionSink | None = None

    _texts: OrderedDict[str, str] = PrivateAttr(default_factory=OrderedDict)

    async def _with_deadline(self, stage: str, call: Coroutine[Any, Any, Any]) -> Any:
        seconds = self.config.collaborator_timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=seconds)
        except asyncio.TimeoutError as e:
            raise CollaboratorTimeout(stage, seconds) from e

    async def _extract_text(self, file: SourceFile) -> str:
        """Run stage 1, folding every failure into `TextExtractionFailed`."""
        try:
            return await self._with_deadline("text extraction", self.text_extractor.extract_text(file))
        except CollaboratorError as e:
            raise TextExtractionFailed(e.reason) from e
        except UnsupportedMimeType as e:
            raise TextExtractionFailed(str(e)) from e
        except Exception as e:
            logger.exception("Text extractor crashed on %s", file.filename)
            raise TextExtractionFailed(f"Text extraction error: {e}") from e

    async def _extract_terms(self, text: str, filename: str, column_ids: Sequence[str]) -> TermExtraction:
        """Run stage 2, folding every failure into `TermExtractionFailed`."""
        try:
            return await self._with_deadline(
                "term extraction",
                self.term_extractor.extract(text, filename, list(column_ids)),
            )
        except CollaboratorError as e:
            raise TermExtractionFailed(e.reason) from e
        except Exception as e:
            logger.exception("Term extractor crashed on %s", filename)
            raise TermExtractionFailed(f"Term extraction error: {e}") from e

    async def submit(self, file: SourceFile, document_id: str | None = None) -> Document:
        """Validate an upload and create its pending document.

        Raises:
            UnsupportedMimeType: If the file type is not accepted. Nothing
                is stored in that case.
            DuplicateDocumentId: If ``document_id`` is already taken.
        """
        if not self.config.accepts(file.mime_type):
            raise UnsupportedMimeType(file.mime_type, file.filename)
        document = Document(
            id=document_id or str(uuid.uuid4()),
            display_name=file.filename,
            status=DocumentStatus.UPLOADING,
        )
        await self.store.create_pending(document)
        await self.store.mark_processing(document.id)
        logger.info("Submitted %s as %s", file.filename, document.id)
        return document.model_copy(update={"status": DocumentStatus.PROCESSING})

    async def process_document(
        self,
        document_id: str,
        file: SourceFile,
        existing_column_ids: Sequence[str] | None = None,
    ) -> ProcessOutcome:
        """Run both extraction stages for one pending document.

        Terms are restricted to ``existing_column_ids`` (the registry's ids
        when omitted). Suggestions for columns that already exist are
        dropped, and only the first remaining one is forwarded to
        ``suggestion_sink``.

        Never raises for collaborator failures: the document is moved to
        ``error`` and the outcome says which stage failed.
        """
        if existing_column_ids is None:
            existing_column_ids = await self.registry.column_ids()
        known = set(existing_column_ids)

        try:
            text = await self._extract_text(file)
            extraction = await self._extract_terms(text, file.filename, existing_column_ids)
        except (TextExtractionFailed, TermExtractionFailed) as e:
            stage: Literal["text", "term"] = "text" if isinstance(e, TextExtractionFailed) else "term"
            await self.store.record_failure(document_id, e.reason)
            logger.warning("Document %s (%s) failed at %s stage: %s", document_id, file.filename, stage, e.reason)
            return ProcessOutcome(
                document_id=document_id,
                status=DocumentStatus.ERROR,
                failed_stage=stage,
                error_detail=e.reason,
            )

        self._remember_text(document_id, text)
        terms = {cid: term for cid, term in extraction.terms.items() if cid in known}
        await self.store.record_success(document_id, terms)
        logger.info("Document %s (%s) completed with %d terms", document_id, file.filename, len(terms))

        suggestion, kept = await self._forward_suggestion(document_id, file.filename, extraction, known)
        return ProcessOutcome(
            document_id=document_id,
            status=DocumentStatus.COMPLETED,
            terms=terms,
            suggestion=suggestion,
            suggestion_kept=kept,
        )

    async def _forward_suggestion(
        self,
        document_id: str,
        filename: str,
        extraction: TermExtraction,
        known: set[str],
    ) -> tuple[Suggestion | None, bool]:
        # The registry may have grown while the collaborator was running.
        known = known | set(await self.registry.column_ids())
        fresh = [s for s in extraction.suggestions if s.candidate_id not in known]
        if not fresh:
            return None, False
        if len(fresh) > 1:
            logger.debug("Surfacing 1 of %d suggestions from %s", len(fresh), filename)
        suggestion = Suggestion.from_extraction(fresh[0], document_id, filename)
        if self.suggestion_sink is None:
            return suggestion, False
        return suggestion, await self.suggestion_sink(suggestion)

    async def upload_batch(self, files: Sequence[SourceFile]) -> BatchResult:
        """Submit every file, then process the accepted ones concurrently.

        Files with an unaccepted MIME type are reported in ``rejected`` and
        never reach the store. All accepted documents are ``processing``
        before the first extraction starts.
        """
        rejected: list[RejectedUpload] = []
        submitted: list[tuple[Document, SourceFile]] = []
        for file in files:
            try:
                document = await self.submit(file)
            except UnsupportedMimeType as e:
                logger.warning("Rejected upload %s: %s", file.filename, e)
                rejected.append(RejectedUpload(filename=file.filename, mime_type=file.mime_type, reason=str(e)))
                continue
            submitted.append((document, file))
            if self.source_loader is not None:
                await self.source_loader.save(document.id, file)

        column_ids = await self.registry.column_ids()
        results = await asyncio.gather(
            *(self.process_document(document.id, file, column_ids) for document, file in submitted),
            return_exceptions=True,
        )
        outcomes: list[ProcessOutcome] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            outcomes.append(result)
        return BatchResult(outcomes=tuple(outcomes), rejected=tuple(rejected))

    def _remember_text(self, document_id: str, text: str) -> None:
        """LRU cache of first-pass text; evicted documents are re-read via the source loader."""
        if self.config.text_cache_size == 0:
            return
        self._texts[document_id] = text
        self._texts.move_to_end(document_id)
        while len(self._texts) > self.config.text_cache_size:
            self._texts.popitem(last=False)

    async def _text_for(self, document: Document) -> str:
        cached = self._texts.get(document.id)
        if cached is not None:
            self._texts.move_to_end(document.id)
            return cached
        if self.source_loader is None:
            raise TextExtractionFailed(f"No text or source file available for {document.display_name}")
        file = await self.source_loader.load(document.id)
        if file is None:
            raise TextExtractionFailed(f"Source file for {document.display_name} is no longer available")
        text = await self._extract_text(file)
        self._remember_text(document.id, text)
        return text

    async def backfill_column(self, document: Document, column: Column) -> Term:
        """Extract one column for an already-processed document and merge it.

        Only ``column.id`` is written; the document's status and other terms
        are left alone.

        Raises:
            TextExtractionFailed: The document text could not be obtained.
            TermExtractionFailed: The collaborator failed for this column.
        """
        text = await self._text_for(document)
        column_ids = await self.registry.column_ids()
        try:
            term = await self._with_deadline(
                "term extraction",
                self.term_extractor.extract_column(text, document.display_name, column, column_ids),
            )
        except CollaboratorError as e:
            raise TermExtractionFailed(e.reason) from e
        except Exception as e:
            logger.exception("Term extractor crashed while backfilling %s", document.id)
            raise TermExtractionFailed(f"Term extraction error: {e}") from e
        await self.store.merge_term(document.id, column.id, term)
        return term
