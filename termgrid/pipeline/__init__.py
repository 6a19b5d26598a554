"""Collaborator interfaces and the bundled extractors."""

from termgrid.pipeline.interfaces import (
    SourceLoaderInterface,
    TermExtraction,
    TermExtractorInterface,
    TextExtractorInterface,
)
from termgrid.pipeline.text import InMemorySourceLoader, MimeRoutingTextExtractor, PlainTextExtractor

__all__ = [
    "TextExtractorInterface",
    "TermExtractorInterface",
    "SourceLoaderInterface",
    "TermExtraction",
    "PlainTextExtractor",
    "MimeRoutingTextExtractor",
    "InMemorySourceLoader",
]
