"""Exception hierarchy for the term-table engine.

Errors fall into four families:

- **ValidationError**: input rejected before any state is touched
  (unsupported file type, colliding document id).
- **CollaboratorError**: an external collaborator (text extraction, term
  extraction) failed. The orchestrator converts these into a document
  ``error`` status; they never escape ``process_document``.
- **ConsistencyError**: an id that should exist does not (or one that should
  not exist does). Only the orchestrator and coordinator call the stores, so
  these indicate an integration bug.
- **SuggestionError**: a suggestion could not be resolved, usually because
  of a double submission.
"""


class TermGridError(Exception):
    """Base class for every error raised by termgrid."""


# --- Validation ---


class ValidationError(TermGridError):
    """Input rejected before any state mutation."""


class UnsupportedMimeType(ValidationError):
    def __init__(self, mime_type: str, filename: str | None = None):
        self.mime_type = mime_type
        self.filename = filename
        where = f" ({filename})" if filename else ""
        super().__init__(f"Unsupported file type: {mime_type}{where}")


class DuplicateDocumentId(ValidationError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document id already exists: {document_id}")


# --- Collaborators ---


class CollaboratorError(TermGridError):
    """An external collaborator failed; ``reason`` is human readable."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class TextExtractionFailed(CollaboratorError):
    pass


class TermExtractionFailed(CollaboratorError):
    pass


class ExtractionServiceError(CollaboratorError):
    pass


class RateLimited(CollaboratorError):
    def __init__(self, reason: str = "Rate limit exceeded. Please try again later."):
        super().__init__(reason)


class QuotaExceeded(CollaboratorError):
    def __init__(self, reason: str = "AI usage limit reached. Please add credits to continue."):
        super().__init__(reason)


class MalformedResponse(CollaboratorError):
    pass


class CollaboratorTimeout(CollaboratorError):
    def __init__(self, stage: str, seconds: float):
        self.stage = stage
        self.seconds = seconds
        super().__init__(f"Timeout: {stage} did not respond within {seconds:g}s")


# --- Consistency ---


class ConsistencyError(TermGridError):
    """Store invariant violated by a caller."""


class UnknownDocument(ConsistencyError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Unknown document: {document_id}")


class UnknownColumn(ConsistencyError):
    def __init__(self, column_id: str):
        self.column_id = column_id
        super().__init__(f"Unknown column: {column_id}")


class DuplicateColumnId(ConsistencyError):
    def __init__(self, column_id: str):
        self.column_id = column_id
        super().__init__(f"Column id already exists: {column_id}")


class DuplicateColumnOrder(ConsistencyError):
    def __init__(self, order: int, holder: str):
        self.order = order
        self.holder = holder
        super().__init__(f"Column order {order} is already used by {holder}")


# --- Suggestions ---


class SuggestionError(TermGridError):
    pass


class SuggestionAlreadyResolved(SuggestionError):
    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"Suggestion {candidate_id!r} was already resolved")


class NoPendingSuggestion(SuggestionError):
    def __init__(self) -> None:
        super().__init__("There is no pending suggestion")
