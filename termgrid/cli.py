"""Command-line entry point: analyze contracts and write the term table as CSV.

Usage:
    python -m termgrid analyze contracts/*.txt --output terms.csv
    python -m termgrid analyze a.txt b.txt --accept-suggestions --search remote

Text files are read directly; other formats need a text-extraction backend
and are reported as failed documents. Terms are extracted by the
OpenAI-compatible endpoint configured under ``[termgrid.llm]``.
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from termgrid.config import load_config
from termgrid.document import DocumentStatus, SourceFile
from termgrid.errors import NoPendingSuggestion
from termgrid.logging import get_logger, setup_logging
from termgrid.pipeline.llm import LLMTermExtractor
from termgrid.pipeline.text import PlainTextExtractor
from termgrid.session import ContractSession

logger = get_logger(__name__)


def _read_file(path: Path) -> SourceFile:
    mime_type, _ = mimetypes.guess_type(path.name)
    return SourceFile(
        filename=path.name,
        mime_type=mime_type or "application/octet-stream",
        content=path.read_bytes(),
    )


async def _resolve_suggestions(session: ContractSession, accept: bool) -> None:
    while session.pending_suggestion is not None:
        suggestion = session.pending_suggestion
        try:
            if accept:
                report = await session.accept_suggestion(suggestion.candidate_id)
                logger.info(
                    "Added column %s, backfilled %d/%d documents",
                    report.column.id,
                    len(report.succeeded),
                    len(report.attempted),
                )
            else:
                await session.dismiss_suggestion(suggestion.candidate_id)
                logger.info("Skipped suggested column %s (%r)", suggestion.candidate_id, suggestion.label)
        except NoPendingSuggestion:
            break


async def analyze(args: argparse.Namespace) -> int:
    setup_logging(args.log_level)
    config = load_config(args.config)
    session = ContractSession(
        text_extractor=PlainTextExtractor(),
        term_extractor=LLMTermExtractor(config.llm),
        config=config,
    )
    files = [_read_file(Path(p)) for p in args.files]
    result = await session.upload(files)
    for rejected in result.rejected:
        logger.warning("Rejected %s: %s", rejected.filename, rejected.reason)
    for document in await session.documents():
        if document.status is DocumentStatus.ERROR:
            logger.error("%s failed: %s", document.display_name, document.error_detail)

    await _resolve_suggestions(session, args.accept_suggestions)

    if args.search:
        session.search(args.search)
    if args.sort:
        session.click_header(args.sort)
        if args.descending:
            session.click_header(args.sort)

    csv_text = await session.export()
    if args.output:
        Path(args.output).write_text(csv_text + "\n", encoding="utf-8")
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(csv_text + "\n")
    stats = await session.stats()
    logger.info("%d documents: %d completed, %d errors", stats.total, stats.completed, stats.error)
    return 0 if stats.error == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="termgrid", description="Extract contract terms into a table.")
    parser.add_argument("--config", help="Path to termgrid.toml")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze_parser = sub.add_parser("analyze", help="Analyze contract files and export CSV")
    analyze_parser.add_argument("files", nargs="+", help="Contract files to upload")
    analyze_parser.add_argument("--output", "-o", help="CSV output path (default: stdout)")
    analyze_parser.add_argument("--accept-suggestions", action="store_true", help="Add every suggested column and backfill it")
    analyze_parser.add_argument("--search", help="Only export rows matching this text")
    analyze_parser.add_argument("--sort", metavar="COLUMN_ID", help="Sort rows by this column")
    analyze_parser.add_argument("--descending", action="store_true", help="Sort descending (with --sort)")
    analyze_parser.set_defaults(handler=analyze)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(args.handler(args))
