"""Schema evolution: accepting or dismissing suggested columns.

The coordinator is a small state machine around the live suggestion:

    IDLE --offer--> SUGGESTED --dismiss--> IDLE
                    SUGGESTED --accept---> ACCEPTING --sweep done--> IDLE

Accepting a suggestion adds the column to the registry, then backfills it on
every document that was ``completed`` when the sweep started. Documents that
were still being extracted at that point are not revisited. Their extraction
runs against the column ids read when their batch started, so they never get
the new column and show the placeholder for it. A failed backfill for one
document is recorded in the `BackfillReport` and the sweep moves on; the
column stays either way.

Suggestions that arrive while the coordinator is busy wait in a bounded
queue. ``capacity`` counts the live suggestion, so the default of 1 keeps
nothing in reserve and drops late arrivals (they are still logged and kept
in ``dropped``).

The move out of SUGGESTED happens once. ``accept`` and ``dismiss`` take the
candidate id they expect to resolve; whichever call claims it first wins and
the other raises `SuggestionAlreadyResolved`.
"""

import asyncio
from collections import deque
from enum import Enum
from typing import Mapping, Sequence

from pydantic import BaseModel, Field

from termgrid.column import Column
from termgrid.document import Document, DocumentStatus
from termgrid.errors import (
    CollaboratorError,
    ConsistencyError,
    NoPendingSuggestion,
    SuggestionAlreadyResolved,
)
from termgrid.ingest import ExtractionOrchestrator
from termgrid.logging import get_logger
from termgrid.storage.interfaces import DocumentStoreInterface, SchemaRegistryInterface
from termgrid.suggestion import Suggestion

logger = get_logger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    SUGGESTED = "suggested"
    ACCEPTING = "accepting"


class BackfillReport(BaseModel):
    """What happened when a new column was backfilled.

    Attributes:
        column: The column that was added.
        attempted: Ids of the completed documents snapshotted at sweep start.
        succeeded: Ids whose term for ``column`` was merged.
        failures: Document id -> reason for each failed backfill.
    """

    model_config = {"frozen": True}

    column: Column
    attempted: tuple[str, ...] = ()
    succeeded: tuple[str, ...] = ()
    failures: Mapping[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class SchemaEvolutionCoordinator:
    """Owns the suggestion slot and runs the backfill sweep on acceptance.

    Args:
        registry: Gains a column on acceptance.
        store: Source of the completed-document snapshot.
        orchestrator: Performs per-document single-column extraction.
        capacity: Maximum outstanding suggestions, live one included.
        backfill_concurrency: Maximum parallel backfill extractions.
    """

    def __init__(
        self,
        registry: SchemaRegistryInterface,
        store: DocumentStoreInterface,
        orchestrator: ExtractionOrchestrator,
        capacity: int = 1,
        backfill_concurrency: int = 1,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if backfill_concurrency < 1:
            raise ValueError("backfill_concurrency must be >= 1")
        self.registry = registry
        self.store = store
        self.orchestrator = orchestrator
        self.capacity = capacity
        self.backfill_concurrency = backfill_concurrency
        self._state = CoordinatorState.IDLE
        self._live: Suggestion | None = None
        self._queue: deque[Suggestion] = deque()
        self._lock = asyncio.Lock()
        self.dropped: list[Suggestion] = []

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def pending(self) -> Suggestion | None:
        """The suggestion currently shown to the user (or being accepted)."""
        return self._live

    @property
    def queued(self) -> tuple[Suggestion, ...]:
        return tuple(self._queue)

    def _outstanding_ids(self) -> set[str]:
        ids = {s.candidate_id for s in self._queue}
        if self._live is not None:
            ids.add(self._live.candidate_id)
        return ids

    def _drop(self, suggestion: Suggestion, why: str) -> bool:
        logger.warning("Dropping suggestion %s from %s: %s", suggestion.candidate_id, suggestion.origin_document_id, why)
        self.dropped.append(suggestion)
        return False

    async def offer(self, suggestion: Suggestion) -> bool:
        """Surface a suggestion, or queue it if one is already live.

        Returns:
            True if the suggestion became live or was queued, False if it
            was dropped (known column, duplicate, or queue full).
        """
        async with self._lock:
            if await self.registry.get(suggestion.candidate_id) is not None:
                return self._drop(suggestion, "column already exists")
            if suggestion.candidate_id in self._outstanding_ids():
                return self._drop(suggestion, "already pending")
            if self._state is CoordinatorState.IDLE:
                self._live = suggestion
                self._state = CoordinatorState.SUGGESTED
                logger.info("Suggesting new column %s (%r)", suggestion.candidate_id, suggestion.label)
                return True
            if 1 + len(self._queue) >= self.capacity:
                return self._drop(suggestion, "suggestion queue is full")
            self._queue.append(suggestion)
            logger.info("Queued suggestion %s behind %s", suggestion.candidate_id, self._live.candidate_id if self._live else None)
            return True

    def _claim(self, candidate_id: str | None) -> Suggestion:
        """Check-and-set out of SUGGESTED. Caller must hold the lock."""
        if self._state is CoordinatorState.SUGGESTED and self._live is not None:
            if candidate_id is None or candidate_id == self._live.candidate_id:
                return self._live
        if candidate_id is not None:
            raise SuggestionAlreadyResolved(candidate_id)
        if self._state is CoordinatorState.ACCEPTING and self._live is not None:
            raise SuggestionAlreadyResolved(self._live.candidate_id)
        raise NoPendingSuggestion()

    async def _advance(self) -> None:
        """Clear the live slot and promote the next still-relevant suggestion."""
        self._live = None
        self._state = CoordinatorState.IDLE
        while self._queue:
            candidate = self._queue.popleft()
            if await self.registry.get(candidate.candidate_id) is not None:
                self._drop(candidate, "column was added while queued")
                continue
            self._live = candidate
            self._state = CoordinatorState.SUGGESTED
            logger.info("Suggesting new column %s (%r)", candidate.candidate_id, candidate.label)
            break

    async def dismiss(self, candidate_id: str | None = None) -> Suggestion:
        """Discard the live suggestion without touching the schema.

        Raises:
            SuggestionAlreadyResolved: ``candidate_id`` is no longer live.
            NoPendingSuggestion: Nothing is pending and no id was given.
        """
        async with self._lock:
            suggestion = self._claim(candidate_id)
            logger.info("Dismissed suggestion %s", suggestion.candidate_id)
            await self._advance()
            return suggestion

    async def accept(self, candidate_id: str | None = None) -> BackfillReport:
        """Add the suggested column and backfill it on completed documents.

        The column is committed before the sweep starts and is never rolled
        back, even if every backfill fails.

        Raises:
            SuggestionAlreadyResolved: ``candidate_id`` is no longer live.
            NoPendingSuggestion: Nothing is pending and no id was given.
        """
        async with self._lock:
            suggestion = self._claim(candidate_id)
            self._state = CoordinatorState.ACCEPTING
        try:
            column = await self.registry.add_column(suggestion.to_column_definition())
            snapshot = await self.store.list_by_status(DocumentStatus.COMPLETED)
            logger.info("Accepted %s; backfilling %d completed documents", column.id, len(snapshot))
            report = await self._sweep(column, snapshot)
        finally:
            async with self._lock:
                await self._advance()
        if report.failures:
            logger.warning("Backfill of %s failed for %d of %d documents", column.id, len(report.failures), len(report.attempted))
        else:
            logger.info("Backfill of %s finished for %d documents", column.id, len(report.attempted))
        return report

    async def _sweep(self, column: Column, documents: Sequence[Document]) -> BackfillReport:
        semaphore = asyncio.Semaphore(self.backfill_concurrency)
        succeeded: list[str] = []
        failures: dict[str, str] = {}

        async def backfill_one(document: Document) -> None:
            async with semaphore:
                try:
                    await self.orchestrator.backfill_column(document, column)
                except (CollaboratorError, ConsistencyError) as e:
                    reason = e.reason if isinstance(e, CollaboratorError) else str(e)
                    logger.warning("Backfill of %s failed for %s: %s", column.id, document.id, reason)
                    failures[document.id] = reason
                else:
                    succeeded.append(document.id)

        await asyncio.gather(*(backfill_one(document) for document in documents))
        attempted = tuple(document.id for document in documents)
        return BackfillReport(
            column=column,
            attempted=attempted,
            succeeded=tuple(doc_id for doc_id in attempted if doc_id in succeeded),
            failures=failures,
        )
