"""
Command line entry point.

    python -m repo_context --project . query "where are uploads retried" --active-file src/upload.ts
    python -m repo_context --project . status
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .logging_config import restore_stderr_logging, suppress_stderr_logging
from .services.embedding_service import get_embedding_service
from .services.retriever_registry import RetrieverRegistry


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="repo-context", description="Repository context retrieval")
    parser.add_argument("--project", "-p", type=Path, default=None,
                        help="Root directory to index (default: current directory)")
    parser.add_argument("--no-embeddings", action="store_true",
                        help="Rank with lexical scores only")
    parser.add_argument("--lightweight-embeddings", action="store_true",
                        help="Use hash-based embeddings (testing only)")
    parser.add_argument("--timeout", type=float, default=120.0,
                        help="Seconds to wait for the initial index build")

    commands = parser.add_subparsers(dest="command", required=True)

    query = commands.add_parser("query", help="Print repository context for a prompt")
    query.add_argument("prompt", help="Free-text prompt")
    query.add_argument("--active-file", "-a", default=None, help="File the prompt is about")

    commands.add_parser("status", help="Build the index and show statistics")
    return parser


def _status_table(status: Dict[str, Any]) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Label", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Root", status["root"])
    table.add_row("Snapshot", f"{status['chunks']} chunks ({status['origin']})")
    table.add_row("Fingerprint", status["fingerprint"] or "-")
    table.add_row("Embeddings", "available" if status.get("embeddings_available") else "lexical only")
    embedding = status.get("embedding")
    if embedding:
        table.add_row("Embedding model", embedding["model"])

    stats = status.get("last_rebuild")
    if stats:
        table.add_row("Files", f"{stats['files_admitted']} admitted / {stats['files_discovered']} discovered")
        table.add_row("Chunked files", str(stats["files_chunked"]))
        if stats["skipped"]:
            outcome = "unchanged"
        elif stats["cache_hit"]:
            outcome = "cache hit"
        else:
            outcome = "full scan"
        table.add_row("Last rebuild", f"{outcome} in {stats['duration_ms']} ms")
    if status.get("last_error"):
        table.add_row("Last error", f"[red]{status['last_error']}[/red]")
    return table


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the repo-context CLI."""
    args = _build_parser().parse_args(argv)
    console = Console()

    if args.no_embeddings:
        registry = RetrieverRegistry(use_embeddings=False)
    elif args.lightweight_embeddings:
        registry = RetrieverRegistry(embedding=get_embedding_service("", use_lightweight=True))
    else:
        registry = RetrieverRegistry()

    retriever = registry.get(args.project)
    retriever.coordinator.ensure_started()
    finished = retriever.coordinator.wait_until_idle(timeout=args.timeout)

    if args.command == "status":
        console.print(Panel(_status_table(retriever.status()), title="Index", border_style="blue"))
        return 0 if finished else 1

    suppress_stderr_logging()
    try:
        context = retriever.get_context(args.prompt, active_file=args.active_file)
    finally:
        restore_stderr_logging()

    if context is None:
        console.print("[dim]No relevant context found.[/dim]")
        return 1
    console.print(context, markup=False, highlight=False, emoji=False, soft_wrap=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
