# src/main.py - v1
"""CLI entry point: analyze, status, score, archive and discard commands.

Usage:
    assessflow analyze --url <url> [--file <path>] --operator <name>
    assessflow status
    assessflow score <dimension> <score> <justification>
    assessflow archive list | show <key> | delete <key>
    assessflow discard
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from assessflow.version import __version__

if TYPE_CHECKING:
    from assessflow.cache.checkpoint_store import CheckpointStore
    from assessflow.config.settings import Settings
    from assessflow.pipeline.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from assessflow.config.settings import load_settings
    from assessflow.core.errors import AssessflowError
    from assessflow.logging.logger import setup_logging

    try:
        settings = load_settings()
    except AssessflowError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format if settings.log_file else "text",
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except AssessflowError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="assessflow",
        description=f"assessflow v{__version__} - Venture assessment orchestrator",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Run a full assessment for one company",
    )
    p_analyze.add_argument("--url", default=None, help="Company website URL")
    p_analyze.add_argument(
        "--file", type=Path, default=None, help="Company document to attach",
    )
    p_analyze.add_argument(
        "--operator", required=True, help="Name of the assessing operator",
    )
    p_analyze.add_argument(
        "--retry-failed", action="store_true",
        help="Retry each failed phase once before exiting",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show the saved checkpoint",
    )
    p_status.set_defaults(func=_cmd_status)

    # --- score ---
    p_score = subparsers.add_parser(
        "score", help="Record an operator score for one dimension",
    )
    p_score.add_argument("dimension", help="Dimension key, e.g. team")
    p_score.add_argument("score", type=int, help="Score from 1 to 9")
    p_score.add_argument("justification", help="Justification (20-2000 chars)")
    p_score.set_defaults(func=_cmd_score)

    # --- archive ---
    p_archive = subparsers.add_parser(
        "archive", help="Browse archived assessments",
    )
    archive_sub = p_archive.add_subparsers(dest="archive_command", required=True)
    archive_sub.add_parser("list", help="List archived assessments")
    p_show = archive_sub.add_parser("show", help="Print one archived assessment")
    p_show.add_argument("key", help="Assessment key")
    p_delete = archive_sub.add_parser("delete", help="Delete one archived assessment")
    p_delete.add_argument("key", help="Assessment key")
    p_archive.set_defaults(func=_cmd_archive)

    # --- discard ---
    p_discard = subparsers.add_parser(
        "discard", help="Discard the saved checkpoint",
    )
    p_discard.set_defaults(func=_cmd_discard)

    return parser


def _build_store(settings: Settings) -> CheckpointStore:
    from assessflow.cache.checkpoint_store import CheckpointStore
    from assessflow.storage.storage_factory import create_storage

    return CheckpointStore(
        create_storage(settings),
        key_prefix=settings.storage_key_prefix,
        retention=settings.archive_retention,
        prune_target=settings.archive_prune_target,
    )


async def _cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    """Run one assessment and print a summary."""
    from assessflow.clients.client_factory import create_clients
    from assessflow.core.errors import RemoteCallError
    from assessflow.core.models import AnalysisInput, DocumentRef
    from assessflow.pipeline.orchestrator import AnalysisOrchestrator
    from assessflow.pipeline.registry import PhaseRegistry
    from assessflow.pipeline.session import AssessmentSession

    if not args.url and args.file is None:
        logger.error("Either --url or --file is required")
        return 1

    document = None
    if args.file is not None:
        file_path: Path = args.file
        if not file_path.is_file():
            logger.error("File not found: %s", file_path)
            return 1
        mime_type, _ = mimetypes.guess_type(file_path.name)
        document = DocumentRef(
            file_name=file_path.name,
            content=file_path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )

    clients = create_clients(settings)
    orchestrator = AnalysisOrchestrator(
        PhaseRegistry.from_settings(settings),
        clients.company,
        clients.cohort,
    )
    session = AssessmentSession(orchestrator, _build_store(settings))

    try:
        try:
            run = await session.run(
                AnalysisInput(url=args.url, document=document), args.operator
            )
        except RemoteCallError as exc:
            logger.error("Company analysis failed: %s", exc)
            return 1
        except asyncio.CancelledError:
            orchestrator.cancel()
            raise

        if args.retry_failed:
            for key in list(run.failed_phases):
                try:
                    await session.retry(key)
                except RemoteCallError as exc:
                    logger.warning("Retry of %s failed: %s", key, exc)

        _print_run_summary(orchestrator)
        return 0 if orchestrator.is_complete() else 1
    finally:
        await session.close()
        await clients.aclose()


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Print the saved checkpoint's progress."""
    store = _build_store(settings)
    summary = await store.get_progress_summary()
    if summary is None:
        print("No saved assessment.")
        return 0

    print(f"\nSaved assessment ({summary.status}):")
    print(f"  Company:    {summary.company_url}")
    print(f"  Operator:   {summary.operator_name}")
    print(
        f"  Progress:   {summary.completed_count}/{summary.total_phases} "
        f"phases ({summary.percentage}%)"
    )
    if summary.completed_phases:
        print(f"  Completed:  {', '.join(summary.completed_phases)}")
    for dimension, score in summary.operator_scores.items():
        print(f"  Score:      {dimension} = {score.score}")
    return 0


async def _cmd_score(args: argparse.Namespace, settings: Settings) -> int:
    """Record an operator score on the saved checkpoint."""
    store = _build_store(settings)
    saved = await store.save_operator_score(
        args.dimension, args.score, args.justification
    )
    if not saved:
        logger.error("No saved assessment to score")
        return 1
    print(f"Saved {args.dimension} score: {args.score}")
    return 0


async def _cmd_archive(args: argparse.Namespace, settings: Settings) -> int:
    """List, show or delete archived assessments."""
    store = _build_store(settings)

    if args.archive_command == "list":
        summaries = await store.list_archived()
        if not summaries:
            print("No archived assessments.")
            return 0
        for s in summaries:
            marker = "" if s.has_full_data else " (partial)"
            print(f"  {s.date}  {s.key:40s}  {s.venture_name}{marker}")
        return 0

    if args.archive_command == "show":
        entry = await store.load_archived(args.key)
        if entry is None:
            logger.error("No archived assessment: %s", args.key)
            return 1
        print(json.dumps(entry.model_dump(mode="json"), indent=2))
        return 0

    deleted = await store.delete_archived(args.key)
    if not deleted:
        logger.error("No archived assessment: %s", args.key)
        return 1
    print(f"Deleted {args.key}")
    return 0


async def _cmd_discard(args: argparse.Namespace, settings: Settings) -> int:
    """Discard the saved checkpoint."""
    store = _build_store(settings)
    await store.clear()
    print("Saved assessment discarded.")
    return 0


def _print_run_summary(orchestrator: AnalysisOrchestrator) -> None:
    """Print a human-readable summary of a finished run."""
    run = orchestrator.run
    results = orchestrator.get_results()
    print(f"\nAssessment {run.outcome or 'finished'}:")
    print(f"  Run ID:     {run.run_id}")
    print(f"  Completed:  {run.completed_count}/{run.total_count}")
    print(f"  Duration:   {results.duration_s:.1f}s")
    if run.failed_phases:
        print(f"  Failed:     {', '.join(run.failed_phases)}")
    if results.company_description:
        preview = results.company_description[:200]
        if len(results.company_description) > 200:
            preview += "..."
        print(f"  Summary:    {preview}")


if __name__ == "__main__":
    sys.exit(main())
