"""Column definitions for the dynamic term table.

A column is one extractable term type (salary, notice period, ...). Columns
are created either from the seeded default set or when a suggested new term
is accepted, and they are never deleted. After creation only ``visible`` and
``order`` change; ``id`` is permanent.
"""

from pydantic import BaseModel, Field


class ColumnDefinition(BaseModel):
    """Caller-supplied definition used to add a column to the registry.

    ``order`` is optional; the registry appends after the current maximum
    when it is omitted.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1, description="Stable, globally unique column key.")
    label: str = Field(description="Display name.")
    description: str | None = Field(default=None, description="What the term represents.")
    visible: bool = Field(default=True, description="Shown in the default projection.")
    order: int | None = Field(default=None, description="Explicit position, or None to append.")


class Column(BaseModel):
    """A column registered in the schema.

    ``order`` values are only compared with each other; they are unique but
    need not be contiguous.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1, description="Stable, globally unique column key.")
    label: str = Field(description="Display name.")
    description: str | None = Field(default=None, description="What the term represents.")
    visible: bool = Field(default=True, description="Shown in the default projection.")
    order: int = Field(description="Left-to-right position.")


def _default(column_id: str, label: str, order: int, description: str | None = None) -> ColumnDefinition:
    return ColumnDefinition(id=column_id, label=label, description=description, order=order)


DEFAULT_COLUMNS: tuple[ColumnDefinition, ...] = (
    _default("employeeName", "Employee Name", 0),
    _default("position", "Position/Title", 1),
    _default("startDate", "Start Date", 2),
    _default("employmentType", "Employment Type", 3),
    _default("salary", "Salary", 4),
    _default("paymentFrequency", "Payment Frequency", 5),
    _default("benefits", "Benefits", 6),
    _default("ptoDays", "PTO Days", 7),
    _default("noticePeriod", "Notice Period", 8),
    _default("nonCompete", "Non-Compete", 9),
    _default("confidentiality", "Confidentiality", 10),
    _default("workLocation", "Work Location", 11),
    _default("reportingTo", "Reports To", 12),
    _default("terminationProvisions", "Termination Provisions", 13, "General termination terms and procedures"),
    _default("terminationForCause", "Termination for Cause", 14, "What qualifies as termination for cause"),
    _default("terminationWithoutCause", "Termination w/o Cause", 15, "At-will and without cause termination terms"),
    _default("severancePay", "Severance Pay", 16, "Severance package upon termination"),
)
"""Seed schema for employment contracts."""
