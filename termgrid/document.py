"""Document and term representation.

A `Document` is one uploaded file tracked by the document store. Its
``terms`` mapping goes from column id to `Term`. A missing key means the
column has not been extracted for this document yet (for example, a column
added after the document completed and not yet backfilled). A present key
whose `Term.value` is ``None`` means extraction ran and found nothing.

Documents are frozen pydantic models; the store replaces them with
``model_copy(update=...)`` on every change, so a snapshot handed to a reader
never changes underneath it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, Field, field_validator, model_validator


class DocumentStatus(str, Enum):
    """Pipeline status of an uploaded document.

    Transitions only move forward: UPLOADING -> PROCESSING -> (COMPLETED | ERROR).
    """

    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.ERROR)


class Term(BaseModel):
    """An extracted value with its provenance.

    ``excerpt`` without ``value`` is allowed: the model may quote the clause
    that shows a term is absent.
    """

    model_config = {"frozen": True}

    value: str | None = Field(default=None, description="Extracted value, or None when nothing was found.")
    excerpt: str | None = Field(default=None, description="Verbatim source span supporting the value.")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0, description="Extraction confidence.")

    @field_validator("value", mode="before")
    @classmethod
    def empty_value_is_none(cls, value: object) -> object:
        if value == "":
            return None
        return value

    @property
    def has_value(self) -> bool:
        return self.value is not None


class SourceFile(BaseModel):
    """Raw upload handed to the text-extraction collaborator."""

    model_config = {"frozen": True}

    filename: str = Field(min_length=1)
    mime_type: str
    content: bytes = Field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class Document(BaseModel):
    """An uploaded document and its extracted terms."""

    model_config = {"frozen": True}

    id: str = Field(min_length=1, description="Assigned at upload; never changes.")
    display_name: str = Field(description="Name shown in the table, usually the file name.")
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: DocumentStatus = DocumentStatus.PROCESSING
    error_detail: str | None = None
    terms: Mapping[str, Term] = Field(default_factory=dict)

    @field_validator("uploaded_at")
    @classmethod
    def uploaded_at_must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("uploaded_at must be timezone-aware")
        return value

    @model_validator(mode="after")
    def error_detail_iff_error(self) -> "Document":
        if self.status is DocumentStatus.ERROR and not self.error_detail:
            raise ValueError("error_detail is required when status is error")
        if self.status is not DocumentStatus.ERROR and self.error_detail is not None:
            raise ValueError("error_detail is only allowed when status is error")
        return self

    def term(self, column_id: str) -> Term | None:
        return self.terms.get(column_id)
