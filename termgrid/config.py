"""Load termgrid settings from TOML (e.g. termgrid.toml).

Config file is looked up in order:
  1. The explicit path passed to ``load_config``
  2. Path in TERMGRID_CONFIG env var (if set)
  3. termgrid.toml in the current working directory

The first file that exists and parses wins. If none is found, built-in
defaults are used. Settings live under a ``[termgrid]`` table, with the
term-extraction model under ``[termgrid.llm]``:

    [termgrid]
    collaborator_timeout_seconds = 60
    suggestion_queue_capacity = 3

    [termgrid.llm]
    model = "gpt-4o-mini"
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from termgrid.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV = "TERMGRID_CONFIG"
CONFIG_FILENAME = "termgrid.toml"

DEFAULT_ACCEPTED_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
)


class LLMConfig(BaseModel):
    """Connection settings for the OpenAI-compatible term-extraction endpoint."""

    model_config = {"frozen": True}

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key_env: str = Field("OPENAI_API_KEY", description="Environment variable holding the API key.")
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    timeout: float = Field(120.0, gt=0)

    def api_key(self) -> str | None:
        return os.environ.get(self.api_key_env)


class TermGridConfig(BaseModel):
    """Engine settings.

    Attributes:
        accepted_mime_types: MIME types allowed at upload; others are rejected
            before a document is created.
        collaborator_timeout_seconds: Deadline for each text or term
            extraction call. Expiry counts as a collaborator failure.
        suggestion_queue_capacity: How many suggestions may be outstanding,
            counting the live one. 1 reproduces "drop while busy".
        backfill_concurrency: Parallel extractions during a backfill sweep.
        text_cache_size: How many documents keep their extracted text in memory
            for backfills. Older entries are evicted and re-read through the
            source loader; 0 disables the cache.
        document_label_header: First header cell of the export.
        missing_value: Placeholder for absent or null terms in view and export.
    """

    model_config = {"frozen": True}

    accepted_mime_types: tuple[str, ...] = DEFAULT_ACCEPTED_MIME_TYPES
    collaborator_timeout_seconds: float = Field(120.0, gt=0)
    suggestion_queue_capacity: int = Field(1, ge=1)
    backfill_concurrency: int = Field(1, ge=1)
    text_cache_size: int = Field(256, ge=0)
    document_label_header: str = "DocumentLabel"
    missing_value: str = "N/A"
    llm: LLMConfig = Field(default_factory=LLMConfig)

    def accepts(self, mime_type: str) -> bool:
        return mime_type in self.accepted_mime_types


def _default_config_paths(path: Path | str | None) -> list[Path]:
    paths: list[Path] = []
    if path is not None:
        paths.append(Path(path))
    if os.environ.get(CONFIG_ENV):
        paths.append(Path(os.environ[CONFIG_ENV]))
    paths.append(Path.cwd() / CONFIG_FILENAME)
    return paths


def _read_table(path: Path) -> dict[str, Any] | None:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Skipping unreadable config %s: %s", path, e)
        return None
    table = data.get("termgrid", {})
    if not isinstance(table, dict):
        logger.warning("Skipping %s: [termgrid] is not a table", path)
        return None
    return table


def load_config(path: Path | str | None = None) -> TermGridConfig:
    """Load settings from the first usable TOML file, or return defaults.

    Raises:
        pydantic.ValidationError: If a file parses but holds invalid values.
    """
    for candidate in _default_config_paths(path):
        if not candidate.is_file():
            continue
        table = _read_table(candidate)
        if table is None:
            continue
        logger.debug("Loaded config from %s", candidate)
        if "accepted_mime_types" in table:
            table["accepted_mime_types"] = tuple(table["accepted_mime_types"])
        return TermGridConfig.model_validate(table)
    return TermGridConfig()
