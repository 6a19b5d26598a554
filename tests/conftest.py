"""Test fixtures and mock collaborators.

This module provides:
- Mock implementations of the collaborator interfaces (text extraction and
  term extraction) driven entirely by the uploaded file's text
- Pytest fixtures that instantiate in-memory stores, the orchestrator, the
  coordinator and a full session
- Helper factories for source files and documents

The mock term extractor reads a tiny line-based format out of the document
text, so each test controls exactly what gets extracted:

    salary: $90k                         -> term "salary" = "$90k"
    nonCompete: -                        -> term "nonCompete" with no value
    suggest: signingBonus|Signing Bonus|One-time payment|$15,000
                                         -> a suggested new column
    FAIL_TERMS                           -> RateLimited
    SLOW_TERMS                           -> never returns (timeout tests)

Likewise the mock text extractor raises on files starting with FAIL_TEXT
and hangs on files starting with SLOW_TEXT.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Sequence

import pytest

from termgrid.column import DEFAULT_COLUMNS, Column
from termgrid.config import TermGridConfig
from termgrid.document import Document, DocumentStatus, SourceFile, Term
from termgrid.errors import ExtractionServiceError, RateLimited
from termgrid.evolution import SchemaEvolutionCoordinator
from termgrid.ingest import ExtractionOrchestrator
from termgrid.pipeline.interfaces import TermExtraction, TermExtractorInterface, TextExtractorInterface
from termgrid.pipeline.text import InMemorySourceLoader
from termgrid.session import ContractSession
from termgrid.storage.memory import InMemoryDocumentStore, InMemorySchemaRegistry
from termgrid.suggestion import SuggestedTerm


class MockTextExtractor(TextExtractorInterface):
    """Decodes bytes as UTF-8 and records every filename it was asked for."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def extract_text(self, file: SourceFile) -> str:
        self.calls.append(file.filename)
        if file.content.startswith(b"FAIL_TEXT"):
            raise ExtractionServiceError("OCR backend unavailable")
        if file.content.startswith(b"SLOW_TEXT"):
            await asyncio.sleep(3600)
        return file.content.decode("utf-8")


class MockTermExtractor(TermExtractorInterface):
    """Line-based term extractor; see the module docstring for the format.

    Records ``(filename, known_column_ids)`` for each full extraction and
    ``(filename, column_id)`` for each single-column extraction.
    Full extractions for a filename in ``gates`` wait until its event is set.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []
        self.column_calls: list[tuple[str, str]] = []
        self.fail_columns_for: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    @staticmethod
    def _parse(text: str, known_column_ids: Sequence[str]) -> TermExtraction:
        if "FAIL_TERMS" in text:
            raise RateLimited()
        terms: dict[str, Term] = {}
        suggestions: list[SuggestedTerm] = []
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key, value = key.strip(), value.strip()
            if key == "suggest":
                candidate_id, label, description, sample = value.split("|")
                suggestions.append(
                    SuggestedTerm(
                        candidate_id=candidate_id,
                        label=label,
                        description=description,
                        sample_value=sample,
                        excerpt=line,
                    )
                )
            elif key in known_column_ids:
                terms[key] = Term(value=None if value == "-" else value, excerpt=line, confidence=0.9)
        return TermExtraction(terms=terms, suggestions=tuple(suggestions))

    async def extract(self, text: str, filename: str, known_column_ids: Sequence[str]) -> TermExtraction:
        self.calls.append((filename, list(known_column_ids)))
        if filename in self.gates:
            await self.gates[filename].wait()
        if "SLOW_TERMS" in text:
            await asyncio.sleep(3600)
        return self._parse(text, known_column_ids)

    async def extract_column(
        self,
        text: str,
        filename: str,
        column: Column,
        known_column_ids: Sequence[str],
    ) -> Term:
        self.column_calls.append((filename, column.id))
        if filename in self.fail_columns_for:
            raise ExtractionServiceError("model overloaded")
        extraction = self._parse(text, known_column_ids)
        return extraction.terms.get(column.id) or Term()


def make_file(name: str, body: str, mime_type: str = "text/plain") -> SourceFile:
    """Build a SourceFile whose text the mock collaborators understand."""
    return SourceFile(filename=name, mime_type=mime_type, content=body.encode("utf-8"))


def make_document(
    name: str,
    terms: dict[str, Term] | None = None,
    status: DocumentStatus = DocumentStatus.COMPLETED,
    document_id: str | None = None,
    error_detail: str | None = None,
) -> Document:
    """Build a Document snapshot directly, bypassing the pipeline."""
    return Document(
        id=document_id or str(uuid.uuid4()),
        display_name=name,
        uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        status=status,
        error_detail=error_detail,
        terms=terms or {},
    )


SIGNING_BONUS = "suggest: signingBonus|Signing Bonus|One-time payment on acceptance|$15,000"


# --- Fixtures ---


@pytest.fixture
def config() -> TermGridConfig:
    """Default settings with a short collaborator deadline for timeout tests."""
    return TermGridConfig(collaborator_timeout_seconds=0.2)


@pytest.fixture
def registry() -> InMemorySchemaRegistry:
    """A registry seeded with the default contract columns."""
    return InMemorySchemaRegistry(DEFAULT_COLUMNS)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """A fresh, empty document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def text_extractor() -> MockTextExtractor:
    return MockTextExtractor()


@pytest.fixture
def term_extractor() -> MockTermExtractor:
    return MockTermExtractor()


@pytest.fixture
def source_loader() -> InMemorySourceLoader:
    return InMemorySourceLoader()


@pytest.fixture
def orchestrator(
    registry: InMemorySchemaRegistry,
    store: InMemoryDocumentStore,
    text_extractor: MockTextExtractor,
    term_extractor: MockTermExtractor,
    source_loader: InMemorySourceLoader,
    config: TermGridConfig,
) -> ExtractionOrchestrator:
    """An orchestrator wired to the mock collaborators, with no suggestion sink."""
    return ExtractionOrchestrator(
        registry=registry,
        store=store,
        text_extractor=text_extractor,
        term_extractor=term_extractor,
        source_loader=source_loader,
        config=config,
    )


@pytest.fixture
def coordinator(
    registry: InMemorySchemaRegistry,
    store: InMemoryDocumentStore,
    orchestrator: ExtractionOrchestrator,
) -> SchemaEvolutionCoordinator:
    """A coordinator with default capacity 1, registered as the orchestrator's sink."""
    coordinator = SchemaEvolutionCoordinator(registry=registry, store=store, orchestrator=orchestrator)
    orchestrator.suggestion_sink = coordinator.offer
    return coordinator


@pytest.fixture
def session(
    text_extractor: MockTextExtractor,
    term_extractor: MockTermExtractor,
    config: TermGridConfig,
) -> ContractSession:
    """A full session over fresh in-memory stores and the mock collaborators."""
    return ContractSession(text_extractor, term_extractor, config=config)
