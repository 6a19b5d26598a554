"""Durable record format shared with the storage backend.

The database and blob store themselves are outside this package. What lives
here is the record shape, blob path generation, and the conversions in both
directions:

- `record_for` turns a completed `Document` into a `DurableDocumentRecord`.
- `document_from_record` turns a stored record back into a ``completed``
  `Document`, with ``extracted_terms`` mapped straight into ``terms``.
"""

import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Mapping

from pydantic import BaseModel, Field

from termgrid.document import Document, DocumentStatus, SourceFile, Term


class DurableDocumentRecord(BaseModel):
    """One row of the documents table.

    ``extracted_terms`` uses the same ``{value, excerpt, confidence}`` shape
    as `Term`; it is None for a record whose analysis never finished.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    display_name: str
    storage_path: str
    size_bytes: int = Field(ge=0)
    mime_type: str
    extracted_terms: Mapping[str, Term] | None = None
    created_at: datetime | None = None


def storage_path_for(owner_id: str, filename: str) -> str:
    """Blob key ``{owner_id}/{generated name}``, keeping the file extension."""
    suffix = PurePosixPath(filename).suffix
    return f"{owner_id}/{uuid.uuid4()}{suffix}"


def record_for(
    document: Document,
    owner_id: str,
    file: SourceFile,
    storage_path: str | None = None,
) -> DurableDocumentRecord:
    """Build the durable record for a document and its original upload."""
    return DurableDocumentRecord(
        id=document.id,
        owner_id=owner_id,
        display_name=document.display_name,
        storage_path=storage_path or storage_path_for(owner_id, file.filename),
        size_bytes=file.size_bytes,
        mime_type=file.mime_type,
        extracted_terms=dict(document.terms) if document.status is DocumentStatus.COMPLETED else None,
        created_at=document.uploaded_at,
    )


def document_from_record(record: DurableDocumentRecord | Mapping[str, Any]) -> Document:
    """Rebuild an in-memory ``completed`` document from a stored record."""
    if not isinstance(record, DurableDocumentRecord):
        record = DurableDocumentRecord.model_validate(record)
    uploaded_at = record.created_at or datetime.now(timezone.utc)
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
    return Document(
        id=record.id,
        display_name=record.display_name,
        uploaded_at=uploaded_at,
        status=DocumentStatus.COMPLETED,
        terms=dict(record.extracted_terms or {}),
    )
