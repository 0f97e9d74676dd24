#!/usr/bin/env python3
# Tidemark v1.0.0
"""
Tidemark - Android App Baseline Comparison CLI

Detects changes in an application's private data directory for security
assessment: create a baseline, compare the current state against it, and
list or remove stored baselines.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from config import settings
from core.errors import TidemarkError

logger = logging.getLogger(__name__)

EXAMPLES = """
Examples:
  tidemark baseline com.irobot.home              Create baseline for iRobot app
  tidemark compare com.irobot.home               Compare iRobot app to baseline
  tidemark -o /tmp/assessment compare com.whatsapp
  tidemark baseline com.example --source ./pulled/com.example
  tidemark list                                  List all baselines
"""


def _build_orchestrator(output_dir: Path, source: Optional[str] = None):
    """Wire the store and collaborators for one run."""
    from services import (
        AdbClient, AdbMetadataProvider, AdbTreeFetcher, BaselineStore,
        ComparisonOrchestrator, LocalTreeFetcher, StaticMetadataProvider
    )

    store = BaselineStore(output_dir)
    if source:
        fetcher = LocalTreeFetcher()
        metadata_provider = StaticMetadataProvider({"Source": str(Path(source).resolve())})
        source_template = str(source)
    else:
        client = AdbClient(settings.ADB_PATH, settings.ADB_COMMAND_TIMEOUT_SECONDS)
        fetcher = AdbTreeFetcher(
            client,
            scratch_path=settings.DEVICE_SCRATCH_PATH,
            fetch_timeout=settings.FETCH_TIMEOUT_SECONDS
        )
        metadata_provider = AdbMetadataProvider(client)
        source_template = settings.SOURCE_PATH_TEMPLATE

    return ComparisonOrchestrator(
        store,
        fetcher,
        metadata_provider=metadata_provider,
        locations=settings.structural_locations(),
        source_template=source_template,
        hash_workers=settings.HASH_WORKERS,
        hash_chunk_size=settings.HASH_CHUNK_SIZE,
        context_lines=settings.DIFF_CONTEXT_LINES,
        retain_snapshot=settings.RETAIN_CURRENT_STATE
    )


def _confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def create_baseline(target: str, output_dir: Path, source: Optional[str] = None, assume_yes: bool = False) -> int:
    """Create (or, once confirmed, replace) the baseline for a target."""
    orchestrator = _build_orchestrator(output_dir, source)

    print("=" * 60)
    print(f"Creating Baseline for: {target}")
    print("=" * 60)

    overwrite = False
    if orchestrator.store.exists(target):
        print("Existing baseline found.")
        if not (assume_yes or _confirm("    Overwrite? (y/N): ")):
            print("Baseline creation cancelled.")
            return 0
        overwrite = True

    baseline = orchestrator.create_baseline(target, overwrite=overwrite)

    print(f"Baseline created: {baseline.file_count} files hashed")
    print(f"Location: {orchestrator.store.namespace(target)}")
    return 0


def compare(target: str, output_dir: Path, source: Optional[str] = None) -> int:
    """Compare a target's current state to its baseline and print the report."""
    from core import render_text_report

    orchestrator = _build_orchestrator(output_dir, source)
    outcome = orchestrator.compare(target)

    print(render_text_report(outcome.report), end="")
    if outcome.report.is_clean:
        print("No changes detected.")
    else:
        summary = outcome.report.summary()
        print(", ".join(f"{key.replace('_', ' ')}: {count}" for key, count in summary.items()))
    print(f"Report saved: {outcome.report_path}")
    return 0


def list_baselines(output_dir: Path) -> int:
    """List all stored baselines."""
    from services import BaselineStore

    store = BaselineStore(output_dir)

    print("Available Baselines:")
    print("=" * 20)

    found = False
    for summary in store.list_baselines():
        found = True
        print(f"  {summary.target}")
        print(f"    Created:     {summary.metadata.get('Created', 'unknown')}")
        print(f"    App Version: {summary.metadata.get('App Version', 'unknown')}")
        print(f"    Files:       {summary.metadata.get('Total Files', 'unknown')}")
        print()

    if not found:
        print("(no baselines found)")
        print()
        print("Create a baseline with: tidemark baseline <package_name>")
    return 0


def remove_baseline(target: str, output_dir: Path, include_reports: bool = False) -> int:
    """Delete a stored baseline."""
    from services import BaselineStore

    BaselineStore(output_dir).remove(target, include_reports=include_reports)
    print(f"Baseline removed for {target}")
    return 0


def list_reports(target: str, output_dir: Path) -> int:
    """List comparison reports written for a target."""
    from services import BaselineStore

    store = BaselineStore(output_dir)
    names = store.list_reports(target)
    if not names:
        print(f"No reports for {target}.")
        return 0

    print(f"Reports for {target} ({len(names)}):")
    for name in names:
        print(f"  {store.reports_dir(target) / (name + '.txt')}")
    return 0


def run_server(host: str, port: int, reload: bool = False) -> int:
    """Run the FastAPI server."""
    import uvicorn
    uvicorn.run("api.main:app", host=host, port=port, reload=reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tidemark",
        description="Android App - Baseline Comparison Tool",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output directory (default: OUTPUT_DIR setting)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # baseline
    baseline_parser = subparsers.add_parser("baseline", help="Create new baseline")
    baseline_parser.add_argument("target", help="Android package name (e.g., com.irobot.home)")
    baseline_parser.add_argument("--source", help="Copy from a local directory instead of the device")
    baseline_parser.add_argument("-y", "--yes", action="store_true", help="Overwrite an existing baseline without asking")

    # compare
    compare_parser = subparsers.add_parser("compare", help="Compare current state to baseline")
    compare_parser.add_argument("target", help="Android package name")
    compare_parser.add_argument("--source", help="Copy from a local directory instead of the device")

    # list
    subparsers.add_parser("list", help="List available baselines")

    # remove
    remove_parser = subparsers.add_parser("remove", help="Delete a stored baseline")
    remove_parser.add_argument("target", help="Android package name")
    remove_parser.add_argument("--reports", action="store_true", help="Also delete comparison reports")

    # reports
    reports_parser = subparsers.add_parser("reports", help="List comparison reports for a target")
    reports_parser.add_argument("target", help="Android package name")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.API_HOST, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=settings.API_PORT, help="Port to listen on")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose or settings.DEBUG else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 1

    output_dir = args.output or settings.OUTPUT_DIR

    try:
        if args.command == "baseline":
            return create_baseline(args.target, output_dir, args.source, args.yes)
        elif args.command == "compare":
            return compare(args.target, output_dir, args.source)
        elif args.command == "list":
            return list_baselines(output_dir)
        elif args.command == "remove":
            return remove_baseline(args.target, output_dir, args.reports)
        elif args.command == "reports":
            return list_reports(args.target, output_dir)
        elif args.command == "serve":
            return run_server(args.host, args.port, args.reload)
    except TidemarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.hint:
            print(f"    {e.hint}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
