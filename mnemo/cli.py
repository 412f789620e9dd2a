"""
Mnemo CLI - run compression and retrieval against JSON files

Usage:
    mnemo compress pending.json              # Compress pending observations
    mnemo compress history.json --temporal   # Compress window by window
    mnemo retrieve graph.json --context "..."
    mnemo critical graph.json
    mnemo category graph.json preference
    mnemo timerange graph.json --start 2025-01-01
    mnemo serve                              # Start the HTTP server
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# ANSI colors
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
BLUE = "\033[94m"
RESET = "\033[0m"
BOLD = "\033[1m"


def load_json(path: str):
    """Read a JSON document, exiting with a readable message on failure."""
    file_path = Path(path)
    if not file_path.exists():
        print(f"{RED}File not found: {path}{RESET}", file=sys.stderr)
        sys.exit(1)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"{RED}Invalid JSON in {path}: {e}{RESET}", file=sys.stderr)
        sys.exit(1)


def load_graph(path: str):
    from mnemo.backend.modules.memory import GraphStoreError, JsonFileGraphStore

    try:
        return JsonFileGraphStore(path)
    except GraphStoreError as e:
        print(f"{RED}{e}{RESET}", file=sys.stderr)
        sys.exit(1)


def build_engine(args):
    from mnemo.backend.modules.memory import MemoryConfig, MemoryEngine

    overrides = {}
    for name in ("compression_threshold", "similarity_threshold", "max_observation_age_days",
                 "max_entities", "max_relations"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    try:
        config = MemoryConfig.from_env().with_overrides(overrides)
    except ValueError as e:
        print(f"{RED}Invalid configuration: {e}{RESET}", file=sys.stderr)
        sys.exit(2)
    return MemoryEngine(config=config)


def emit(data):
    print(json.dumps(data, indent=2, default=str))


def cmd_compress(args):
    """Compress pending observations from a JSON list."""
    data = load_json(args.file)
    if isinstance(data, dict):
        data = data.get("pending") or data.get("observations") or []

    engine = build_engine(args)
    if args.temporal:
        compressed = engine.temporal_compression(data, args.window)
    else:
        compressed = engine.compress_observations(data)

    report = engine.size_report(compressed)
    print(f"{GREEN}Compressed {len(compressed)} cluster(s){RESET} "
          f"(~{report.tokens_before} -> ~{report.tokens_after} tokens)", file=sys.stderr)
    emit([c.to_dict() for c in compressed])


def cmd_retrieve(args):
    """Retrieve memories relevant to a context."""
    graph = load_graph(args.graph)
    engine = build_engine(args)
    result = asyncio.run(engine.retrieve_relevant_memories(graph, args.context, args.entity or []))
    if result.error:
        print(f"{RED}Retrieval failed: {result.error}{RESET}", file=sys.stderr)
    else:
        print(f"{BLUE}Keywords:{RESET} {', '.join(result.keywords) or '(none)'}", file=sys.stderr)
    emit(result.to_dict())


def cmd_critical(args):
    """List critical observations and relations."""
    graph = load_graph(args.graph)
    engine = build_engine(args)
    result = asyncio.run(engine.retrieve_critical_memories(graph, args.entity or []))
    emit(result.to_dict())


def cmd_category(args):
    """List observations of one category."""
    graph = load_graph(args.graph)
    engine = build_engine(args)
    result = asyncio.run(engine.retrieve_by_category(graph, args.category, args.entity or []))
    emit(result.to_dict())


def cmd_timerange(args):
    """List observations and relations inside a time range."""
    graph = load_graph(args.graph)
    engine = build_engine(args)
    time_range = {"startDate": args.start, "endDate": args.end}
    result = asyncio.run(engine.retrieve_by_time_range(graph, time_range, args.entity or []))
    if result.error:
        print(f"{YELLOW}Time range lookup failed: {result.error}{RESET}", file=sys.stderr)
    emit(result.to_dict())


def cmd_serve(args):
    """Start the Mnemo server."""
    import os

    if args.graph:
        os.environ["MNEMO_GRAPH_PATH"] = str(Path(args.graph).resolve())

    print(f"{BOLD}Starting Mnemo server...{RESET}\n")
    from mnemo.server.main import start_server
    start_server(host=args.host, port=args.port)


def add_tuning_args(parser: argparse.ArgumentParser):
    parser.add_argument("--compression-threshold", dest="compression_threshold", type=int, default=None)
    parser.add_argument("--similarity-threshold", dest="similarity_threshold", type=float, default=None)
    parser.add_argument("--max-age", dest="max_observation_age_days", type=float, default=None,
                        help="Max observation age in days for compression")
    parser.add_argument("--max-entities", dest="max_entities", type=int, default=None)
    parser.add_argument("--max-relations", dest="max_relations", type=int, default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mnemo",
        description="Mnemo - Memory compression and retrieval scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # compress command
    compress_parser = subparsers.add_parser("compress", help="Compress pending observations")
    compress_parser.add_argument("file", help="JSON list of {entityName, entityType, observation}")
    compress_parser.add_argument("--temporal", action="store_true", help="Compress per time window")
    compress_parser.add_argument("--window", type=int, default=None, help="Time window in days (default: 30)")
    add_tuning_args(compress_parser)

    # retrieve command
    retrieve_parser = subparsers.add_parser("retrieve", help="Retrieve memories for a context")
    retrieve_parser.add_argument("graph", help="Graph export JSON ({entities, relations})")
    retrieve_parser.add_argument("--context", required=True, help="Conversation context text")
    retrieve_parser.add_argument("--entity", action="append", help="Target entity (repeatable)")
    add_tuning_args(retrieve_parser)

    # critical command
    critical_parser = subparsers.add_parser("critical", help="List critical memories")
    critical_parser.add_argument("graph", help="Graph export JSON")
    critical_parser.add_argument("--entity", action="append", help="Restrict to entity (repeatable)")

    # category command
    category_parser = subparsers.add_parser("category", help="List memories of one category")
    category_parser.add_argument("graph", help="Graph export JSON")
    category_parser.add_argument("category", help="Category (identity, preference, goal...)")
    category_parser.add_argument("--entity", action="append", help="Restrict to entity (repeatable)")

    # timerange command
    timerange_parser = subparsers.add_parser("timerange", help="List memories in a time range")
    timerange_parser.add_argument("graph", help="Graph export JSON")
    timerange_parser.add_argument("--start", default=None, help="Start (ISO-8601, default: beginning)")
    timerange_parser.add_argument("--end", default=None, help="End (ISO-8601, default: now)")
    timerange_parser.add_argument("--entity", action="append", help="Restrict to entity (repeatable)")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Server host")
    serve_parser.add_argument("--port", type=int, default=None, help="Server port (default: 27290)")
    serve_parser.add_argument("--graph", default=None, help="Graph export JSON to serve")

    return parser


COMMANDS = {
    "compress": cmd_compress,
    "retrieve": cmd_retrieve,
    "critical": cmd_critical,
    "category": cmd_category,
    "timerange": cmd_timerange,
    "serve": cmd_serve,
}


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == "__main__":
    main()
