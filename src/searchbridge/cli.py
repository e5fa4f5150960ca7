"""CLI entry point for SearchBridge.

Commands:
  searchbridge search <collection> <query>       Run one search and print the hits
  searchbridge index <collection> <file>         Index a JSON array or JSON-lines file
  searchbridge benchmark <collection> <query>    Time every built-in adapter
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from searchbridge import __version__
from searchbridge.adapters.base.exceptions import SearchEngineError
from searchbridge.config.settings import Settings
from searchbridge.core.manager import SearchManager
from searchbridge.observability.logging import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="searchbridge",
        description="SearchBridge — one search API over embedded, Typesense and MeiliSearch backends",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument("--version", action="version", version=f"SearchBridge {__version__}")

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search a collection")
    search.add_argument("collection")
    search.add_argument("query")
    search.add_argument("--adapter", "-a", default=None, help="Adapter to use (default: configured adapter)")
    search.add_argument("--limit", "-l", type=int, default=None, help="Maximum number of hits")

    index = commands.add_parser("index", help="Index documents from a JSON or JSON-lines file")
    index.add_argument("collection")
    index.add_argument("file", type=Path)
    index.add_argument("--adapter", "-a", default=None, help="Adapter to use (default: configured adapter)")
    index.add_argument("--batch-size", type=int, default=None, help="Documents per batch (overrides config)")

    benchmark = commands.add_parser("benchmark", help="Benchmark every built-in adapter")
    benchmark.add_argument("collection")
    benchmark.add_argument("query")
    benchmark.add_argument("--iterations", "-n", type=int, default=None, help="Searches per adapter")

    return parser


def _load_documents(path: Path) -> list[dict[str, Any]]:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".jsonl", ".ndjson"):
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    data = json.loads(text)
    return data if isinstance(data, list) else [data]


async def _search(manager: SearchManager, args: argparse.Namespace) -> None:
    options = {"limit": args.limit} if args.limit else None
    envelope = await manager.search(args.collection, args.query, options)
    print(f"{envelope.total_found} result(s) from {envelope.adapter} in {envelope.processing_time_ms} ms")
    for hit in envelope.hits:
        title = hit.document.get("title", "")
        print(f"  [{hit.score:.4f}] {hit.id}  {title}")


async def _index(manager: SearchManager, args: argparse.Namespace) -> None:
    documents = _load_documents(args.file)
    count = await manager.index(args.collection, documents)
    print(f"Indexed {count} document(s) into '{args.collection}' using {manager.current_adapter_name}")


async def _benchmark(manager: SearchManager, args: argparse.Namespace) -> None:
    results = await manager.benchmark(args.collection, args.query, args.iterations)
    print(f"{'Adapter':<14}{'Total (s)':>12}{'Avg (ms)':>12}{'QPS':>10}")
    for name, result in results.items():
        if not result.ok:
            print(f"{name:<14}  error: {result.error}")
            continue
        print(
            f"{name:<14}{result.total_time:>12.4f}{result.average_time * 1000:>12.3f}{result.queries_per_second:>10.1f}"
        )
    timed = {name: r for name, r in results.items() if r.ok}
    if timed:
        fastest = min(timed, key=lambda name: timed[name].average_time or 0.0)
        print(f"\nFastest adapter: {fastest}")


async def _run(settings: Settings, args: argparse.Namespace) -> None:
    manager = SearchManager(settings)
    try:
        if getattr(args, "adapter", None):
            await manager.switch_adapter(args.adapter)
        else:
            await manager.initialize()

        if args.command == "search":
            await _search(manager, args)
        elif args.command == "index":
            await _index(manager, args)
        else:
            await _benchmark(manager, args)
    finally:
        await manager.shutdown()


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = _build_parser().parse_args(argv)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            return 1
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    if args.log_level:
        settings.observability.log_level = args.log_level
    if getattr(args, "batch_size", None):
        settings.indexing.batch_size = args.batch_size

    setup_logging(settings.observability)

    if args.command == "benchmark" and not settings.performance.enable_benchmark:
        print(
            "Error: benchmarking is disabled; set SEARCHBRIDGE_PERFORMANCE__ENABLE_BENCHMARK=true",
            file=sys.stderr,
        )
        return 1

    try:
        asyncio.run(_run(settings, args))
    except SearchEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
