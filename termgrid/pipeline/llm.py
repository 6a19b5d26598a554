"""Term extraction through an OpenAI-compatible chat-completions endpoint.

The model is forced to call a single tool, ``extract_contract_terms``, whose
JSON schema has one property per tracked column plus ``suggestedNewTerms``.
The tool-call arguments are then validated against pydantic models, so a
response of the wrong shape surfaces as `MalformedResponse` instead of
leaking half-parsed data into the document store.

HTTP failures are mapped onto the collaborator error taxonomy:

- 429 -> `RateLimited`
- 402 -> `QuotaExceeded`
- any other non-2xx status or transport error -> `ExtractionServiceError`
"""

import json
from typing import Any, Mapping, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from termgrid.column import DEFAULT_COLUMNS, Column
from termgrid.config import LLMConfig
from termgrid.document import Term
from termgrid.errors import ExtractionServiceError, MalformedResponse, QuotaExceeded, RateLimited
from termgrid.logging import get_logger
from termgrid.pipeline.interfaces import TermExtraction, TermExtractorInterface
from termgrid.suggestion import SuggestedTerm

logger = get_logger(__name__)

TOOL_NAME = "extract_contract_terms"

SYSTEM_PROMPT = """You are an expert employment contract analyst. Your task is to extract key terms from employment contracts with high accuracy.

For each term you extract:
1. Provide the actual value found in the contract
2. Include the exact excerpt/clause from the contract that contains this information
3. Rate your confidence (0-1) based on how clearly the term is stated

Pay special attention to:
- TERMINATION PROVISIONS: Identify all termination-related clauses
- TERMINATION FOR CAUSE: Look for definitions of "cause" including misconduct, breach of duty, criminal acts, policy violations, etc.
- TERMINATION WITHOUT CAUSE: At-will provisions, notice requirements, severance
- SEVERANCE: Any severance packages, continuation of benefits, garden leave

If a term is not found or not applicable, return null for the value but still provide confidence of 0.

Also identify any significant terms NOT in the standard list that should be tracked (e.g., signing bonus, equity grants, relocation assistance, probation period)."""

TERM_HINTS: dict[str, str] = {
    "employeeName": "Full name of the employee",
    "position": "Job title or position",
    "startDate": "Employment start date",
    "employmentType": "Full-time, Part-time, Contractor, etc.",
    "salary": "Base salary/compensation amount",
    "paymentFrequency": "How often payment is made (weekly, bi-weekly, monthly)",
    "benefits": "List of benefits (health insurance, 401k, etc.)",
    "ptoDays": "Number of PTO/vacation days",
    "noticePeriod": "Required notice period for resignation/termination",
    "nonCompete": "Non-compete clause duration and terms, or null if none",
    "confidentiality": "Whether confidentiality/NDA clause exists and key terms",
    "workLocation": "Remote, Hybrid, On-site, or specific location",
    "reportingTo": "Who the employee reports to",
    "terminationProvisions": "Summary of termination provisions and procedures",
    "terminationForCause": "What qualifies as termination for cause (gross misconduct, breach, etc.)",
    "terminationWithoutCause": "Terms for termination without cause (severance, notice, etc.)",
    "severancePay": "Severance package details if applicable",
}
"""Value descriptions handed to the model for the seeded columns."""

_DEFAULT_LABELS = {definition.id: definition.label for definition in DEFAULT_COLUMNS}


class _RawTerm(BaseModel):
    # Models answer counts and amounts as JSON numbers ("ptoDays": 15).
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    value: str | None = None
    excerpt: str | None = None
    confidence: float | None = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float | None) -> float | None:
        if value is None:
            return None
        return min(1.0, max(0.0, value))

    def to_term(self) -> Term:
        return Term(value=self.value or None, excerpt=self.excerpt or None, confidence=self.confidence)


class _RawSuggestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    term_id: str = Field(alias="termId", min_length=1)
    term_label: str = Field(alias="termLabel")
    description: str | None = None
    sample_value: str | None = Field(default=None, alias="sampleValue")
    excerpt: str | None = None

    def to_suggested_term(self) -> SuggestedTerm:
        return SuggestedTerm(
            candidate_id=self.term_id,
            label=self.term_label,
            description=self.description,
            sample_value=self.sample_value,
            excerpt=self.excerpt,
        )


def _term_property(description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "value": {"type": ["string", "null"], "description": description},
            "excerpt": {"type": "string", "description": "Exact quote from the contract"},
            "confidence": {"type": "number", "description": "Confidence score 0-1"},
        },
        "required": ["value", "excerpt", "confidence"],
    }


_SUGGESTIONS_PROPERTY: dict[str, Any] = {
    "type": "array",
    "description": "Any significant terms found that are not in the standard list",
    "items": {
        "type": "object",
        "properties": {
            "termId": {"type": "string", "description": "camelCase identifier for the term"},
            "termLabel": {"type": "string", "description": "Human-readable label"},
            "description": {"type": "string", "description": "What this term represents"},
            "sampleValue": {"type": "string", "description": "The value found in this contract"},
            "excerpt": {"type": "string", "description": "Relevant contract text"},
        },
        "required": ["termId", "termLabel", "description", "sampleValue", "excerpt"],
    },
}


def build_extraction_schema(
    columns: Mapping[str, str],
    include_suggestions: bool = True,
) -> dict[str, Any]:
    """Build the tool parameter schema for the given ``{column_id: hint}`` map."""
    properties: dict[str, Any] = {column_id: _term_property(hint) for column_id, hint in columns.items()}
    if include_suggestions:
        properties["suggestedNewTerms"] = _SUGGESTIONS_PROPERTY
    return {"type": "object", "properties": properties, "required": list(columns)}


class LLMTermExtractor(TermExtractorInterface):
    """Term extractor backed by an OpenAI-compatible ``/chat/completions`` API.

    Args:
        config: Endpoint, model, and timeout settings.
        api_key: Overrides the key read from ``config.api_key_env``.
        client: Shared ``httpx.AsyncClient``; one is opened per call if omitted.
        hints: Per-column value descriptions; unknown columns fall back to
            their label.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        hints: Mapping[str, str] | None = None,
    ):
        self.config = config or LLMConfig()
        self.api_key = api_key or self.config.api_key()
        self._client = client
        self.hints = dict(TERM_HINTS if hints is None else hints)

    def _url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    def _hint(self, column_id: str) -> str:
        return self.hints.get(column_id) or _DEFAULT_LABELS.get(column_id) or column_id

    def _payload(self, user_message: str, schema: dict[str, Any]) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": TOOL_NAME,
                        "description": "Extract structured employment contract terms with excerpts and confidence scores",
                        "parameters": schema,
                    },
                }
            ],
            "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
        }

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            if self._client is not None:
                return await self._client.post(self._url(), json=payload, headers=headers)
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                return await client.post(self._url(), json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ExtractionServiceError(f"Term extraction request failed: {e}") from e

    async def _call_tool(self, user_message: str, schema: dict[str, Any]) -> dict[str, Any]:
        response = await self._post(self._payload(user_message, schema))
        if response.status_code == 429:
            raise RateLimited()
        if response.status_code == 402:
            raise QuotaExceeded()
        if response.is_error:
            logger.error("AI API error: %d %s", response.status_code, response.text[:500])
            raise ExtractionServiceError(f"Failed to analyze contract (HTTP {response.status_code})")
        try:
            body = response.json()
            tool_call = body["choices"][0]["message"]["tool_calls"][0]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponse(f"Unexpected AI response format: {e!r}") from e
        function = tool_call.get("function") or {}
        if function.get("name") != TOOL_NAME:
            raise MalformedResponse(f"Unexpected tool call: {function.get('name')!r}")
        try:
            arguments = json.loads(function.get("arguments") or "")
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"Tool arguments are not valid JSON: {e}") from e
        if not isinstance(arguments, dict):
            raise MalformedResponse("Tool arguments must be a JSON object")
        return arguments

    @staticmethod
    def _parse_term(column_id: str, raw: Any) -> Term:
        try:
            return _RawTerm.model_validate(raw).to_term()
        except ValidationError as e:
            raise MalformedResponse(f"Invalid term {column_id!r}: {e.error_count()} error(s)") from e

    async def extract(
        self,
        text: str,
        filename: str,
        known_column_ids: Sequence[str],
    ) -> TermExtraction:
        schema = build_extraction_schema({cid: self._hint(cid) for cid in known_column_ids})
        tracked = ", ".join(known_column_ids) or "standard terms"
        message = (
            f"Please analyze this employment contract and extract all key terms:\n\n---\n{text}\n---\n\n"
            f"Existing columns being tracked: {tracked}"
        )
        logger.info("Analyzing contract: %s, text length: %d", filename, len(text))
        arguments = await self._call_tool(message, schema)

        terms: dict[str, Term] = {}
        for column_id in known_column_ids:
            raw = arguments.get(column_id)
            if raw is not None:
                terms[column_id] = self._parse_term(column_id, raw)

        raw_suggestions = arguments.get("suggestedNewTerms") or []
        if not isinstance(raw_suggestions, list):
            raise MalformedResponse("suggestedNewTerms must be a list")
        try:
            suggestions = tuple(_RawSuggestion.model_validate(s).to_suggested_term() for s in raw_suggestions)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid suggestedNewTerms: {e.error_count()} error(s)") from e
        return TermExtraction(terms=terms, suggestions=suggestions)

    async def extract_column(
        self,
        text: str,
        filename: str,
        column: Column,
        known_column_ids: Sequence[str],
    ) -> Term:
        hint = self.hints.get(column.id) or column.description or column.label
        schema = build_extraction_schema({column.id: hint}, include_suggestions=False)
        message = (
            f"Please analyze this employment contract and extract only the term "
            f"{column.label!r} ({hint}):\n\n---\n{text}\n---"
        )
        logger.info("Backfilling %s for %s", column.id, filename)
        arguments = await self._call_tool(message, schema)
        raw = arguments.get(column.id)
        if raw is None:
            return Term()
        return self._parse_term(column.id, raw)
