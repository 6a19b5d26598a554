"""Collaborator interfaces for the two-stage extraction pipeline.

The core never implements OCR or model calls itself. It talks to three
pluggable boundaries:

- **TextExtractorInterface** turns an uploaded file into plain text
  (vision/OCR backend, docx reader, or a straight decode for text files).
- **TermExtractorInterface** turns plain text into the known terms plus
  optional suggestions for terms the schema does not track yet.
- **SourceLoaderInterface** fetches the original file for a document that
  was not uploaded in this session, so a backfill sweep can re-read it.

Typical flow:
    1. TextExtractorInterface.extract_text(file) -> text
    2. TermExtractorInterface.extract(text, filename, known_column_ids)
       -> TermExtraction(terms, suggestions)
    3. On an accepted suggestion, TermExtractorInterface.extract_column
       re-runs extraction for that one column on each completed document.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from pydantic import BaseModel, Field

from termgrid.column import Column
from termgrid.document import SourceFile, Term
from termgrid.suggestion import SuggestedTerm


class TermExtraction(BaseModel):
    """Structured output of one term-extraction call."""

    model_config = {"frozen": True}

    terms: Mapping[str, Term] = Field(default_factory=dict)
    suggestions: tuple[SuggestedTerm, ...] = ()


class TextExtractorInterface(ABC):
    """Convert a raw upload into plain text."""

    @abstractmethod
    async def extract_text(self, file: SourceFile) -> str:
        """Return the document's plain text.

        Raises:
            UnsupportedMimeType: If the backend cannot read this file type.
            ExtractionServiceError: If the backend failed.
        """


class TermExtractorInterface(ABC):
    """Extract contract terms from plain text."""

    @abstractmethod
    async def extract(
        self,
        text: str,
        filename: str,
        known_column_ids: Sequence[str],
    ) -> TermExtraction:
        """Extract every known term and propose new ones.

        ``known_column_ids`` lets the model avoid re-suggesting a column the
        schema already tracks.

        Raises:
            RateLimited: The service throttled the request.
            QuotaExceeded: The account ran out of credits.
            MalformedResponse: The structured output could not be parsed.
            ExtractionServiceError: Any other service or transport failure.
        """

    async def extract_column(
        self,
        text: str,
        filename: str,
        column: Column,
        known_column_ids: Sequence[str],
    ) -> Term:
        """Extract a single column, used when backfilling a new column.

        The default runs a full extraction and keeps only ``column.id``.
        A missing key means the model found nothing, which is recorded as a
        term with no value.
        """
        extraction = await self.extract(text, filename, known_column_ids)
        return extraction.terms.get(column.id) or Term()


class SourceLoaderInterface(ABC):
    """Fetch the original upload for a document, e.g. from blob storage."""

    @abstractmethod
    async def save(self, document_id: str, file: SourceFile) -> None:
        """Keep the original upload so it can be re-read later."""

    @abstractmethod
    async def load(self, document_id: str) -> SourceFile | None:
        """Return the stored file, or None if it is not available."""
