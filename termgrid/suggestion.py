"""New-term candidates proposed by the term-extraction collaborator."""

from pydantic import BaseModel, Field

from termgrid.column import ColumnDefinition


class SuggestedTerm(BaseModel):
    """A candidate column as reported by the term extractor for one document."""

    model_config = {"frozen": True}

    candidate_id: str = Field(min_length=1, description="Proposed column id (camelCase).")
    label: str
    description: str | None = None
    sample_value: str | None = None
    excerpt: str | None = None


class Suggestion(BaseModel):
    """A candidate column awaiting a user decision.

    ``origin_document_id`` is a weak reference: the document may be gone by
    the time the suggestion is resolved.
    """

    model_config = {"frozen": True}

    candidate_id: str = Field(min_length=1)
    label: str
    description: str | None = None
    origin_document_id: str
    origin_document_name: str | None = None
    sample_value: str | None = None

    @classmethod
    def from_extraction(
        cls,
        suggested: SuggestedTerm,
        document_id: str,
        document_name: str | None = None,
    ) -> "Suggestion":
        return cls(
            candidate_id=suggested.candidate_id,
            label=suggested.label,
            description=suggested.description,
            origin_document_id=document_id,
            origin_document_name=document_name,
            sample_value=suggested.sample_value,
        )

    def to_column_definition(self) -> ColumnDefinition:
        return ColumnDefinition(id=self.candidate_id, label=self.label, description=self.description)
