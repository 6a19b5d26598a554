"""
Contract term table - dynamic-schema term extraction for employment contracts.

Uploaded contracts are run through a text-extraction and a term-extraction
collaborator; the extracted terms land in a table whose columns can grow when
the model reports a term the schema does not track yet. Accepting such a
suggestion adds the column and backfills it on every completed document.

This module uses lazy imports so that importing the data model does not pull
in httpx. For example:

    # This does NOT import httpx:
    from termgrid import Column, Document, Term

    # This DOES import httpx (when the symbol is accessed):
    from termgrid import LLMTermExtractor
"""

from typing import TYPE_CHECKING

from termgrid.column import DEFAULT_COLUMNS, Column, ColumnDefinition
from termgrid.config import TermGridConfig, load_config
from termgrid.document import Document, DocumentStatus, SourceFile, Term
from termgrid.evolution import BackfillReport, CoordinatorState, SchemaEvolutionCoordinator
from termgrid.ingest import BatchResult, ExtractionOrchestrator, ProcessOutcome
from termgrid.session import ContractSession
from termgrid.suggestion import SuggestedTerm, Suggestion
from termgrid.view import SortDirection, SortSpec, ViewEngine

if TYPE_CHECKING:
    from termgrid.pipeline.llm import LLMTermExtractor

__all__ = [
    "Column",
    "ColumnDefinition",
    "DEFAULT_COLUMNS",
    "Document",
    "DocumentStatus",
    "SourceFile",
    "Term",
    "SuggestedTerm",
    "Suggestion",
    "TermGridConfig",
    "load_config",
    "ExtractionOrchestrator",
    "ProcessOutcome",
    "BatchResult",
    "SchemaEvolutionCoordinator",
    "CoordinatorState",
    "BackfillReport",
    "ViewEngine",
    "SortSpec",
    "SortDirection",
    "ContractSession",
    "LLMTermExtractor",
]

__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy import for the HTTP-backed extractor."""
    if name == "LLMTermExtractor":
        from termgrid.pipeline.llm import LLMTermExtractor
        return LLMTermExtractor
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
