"""CLI entry point for MCP Slim Proxy."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import BinaryIO, Optional

from .config import SlimConfig, load_slim_config
from .proxy import CHUNK_SIZE


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _add_filter_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to MCP Slim Proxy config (JSON or YAML)")
    parser.add_argument(
        "--disable",
        action="store_true",
        default=None,
        help="Forward every response unchanged",
    )
    parser.add_argument("--drop-keys", metavar="K1,K2", help="Extra field names to drop from every response")
    parser.add_argument("--allow-keys", metavar="K1,K2", help="Only keep these field names (plus structural keys)")
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Enable debug logging")


def _load_config(args: argparse.Namespace) -> SlimConfig:
    cli_overrides = {
        "config_path": args.config,
        "disable": args.disable,
        "drop_keys": args.drop_keys,
        "allow_keys": args.allow_keys,
        "verbose": args.verbose,
        "debug": getattr(args, "debug", None),
        "stats": getattr(args, "stats", None),
        "remote_url": getattr(args, "remote_url", None),
        "debug_dir": getattr(args, "debug_dir", None),
    }
    try:
        return load_slim_config(config_path=args.config, cli_overrides=cli_overrides)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-slim-proxy",
        description="MCP Slim Proxy - drop verbose fields from MCP responses",
    )
    sub = parser.add_subparsers(dest="command")

    p_proxy = sub.add_parser("proxy", help="Wrap an MCP server and slim its responses")
    _add_filter_options(p_proxy)
    p_proxy.add_argument("--stats", action="store_true", default=None, help="Log byte/token savings to stderr on exit")
    p_proxy.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Capture raw and filtered tool responses as JSONL",
    )
    p_proxy.add_argument("--debug-dir", help="Directory for the debug JSONL captures")
    p_proxy.add_argument("--remote-url", help="Remote MCP endpoint for the default mcp-remote upstream")
    p_proxy.add_argument("--dump-effective-config", action="store_true", help="Print resolved config to stderr")
    p_proxy.add_argument(
        "upstream",
        nargs=argparse.REMAINDER,
        help="Upstream MCP server command (after --); defaults to mcp-remote",
    )

    p_slim = sub.add_parser("slim", help="Slim JSON-RPC lines from a file or stdin (offline replay)")
    _add_filter_options(p_slim)
    p_slim.add_argument("input", nargs="?", help="JSONL file to read (default: stdin)")

    p_context = sub.add_parser("beads-context", help="Print beads workflow context for session injection")
    p_context.add_argument("--session-id", default="default", help="Session identifier")
    p_context.add_argument(
        "--event",
        default="session.created",
        choices=["session.created", "session.compacted"],
        help="Session lifecycle event being handled",
    )
    p_context.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    p_sync = sub.add_parser("beads-sync", help="Run `bd sync` at session end")
    p_sync.add_argument("--session-id", default="default", help="Session identifier")
    p_sync.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "proxy":
        _run_proxy(args)
    elif args.command == "slim":
        _run_slim(args)
    elif args.command == "beads-context":
        _run_beads_hook(args, args.event)
    elif args.command == "beads-sync":
        _run_beads_hook(args, "session.ended")
    else:
        parser.print_help()
        sys.exit(1)


def _run_proxy(args: argparse.Namespace) -> None:
    upstream = args.upstream
    if upstream and upstream[0] == "--":
        upstream = upstream[1:]

    config = _load_config(args)
    _configure_logging(config.verbose)

    if args.dump_effective_config:
        print(json.dumps(config.as_dict(), indent=2), file=sys.stderr)

    from .proxy import run_proxy

    try:
        code = asyncio.run(run_proxy(upstream or None, config=config))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


def slim_stream(source: BinaryIO, sink: BinaryIO, config: SlimConfig) -> None:
    """Frame ``source`` and write slimmed lines to ``sink``."""
    from .framer import LineFramer, render_lines
    from .rewriter import MessageRewriter

    rewriter = MessageRewriter(config)
    framer = LineFramer()
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        lines = framer.feed(chunk)
        if lines:
            sink.write(render_lines(lines, rewriter))
    tail = framer.flush()
    if tail:
        sink.write(render_lines(tail, rewriter))
    sink.flush()


def _run_slim(args: argparse.Namespace) -> None:
    config = _load_config(args)
    _configure_logging(config.verbose)

    if args.input:
        try:
            with open(args.input, "rb") as fh:
                slim_stream(fh, sys.stdout.buffer, config)
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
    else:
        slim_stream(sys.stdin.buffer, sys.stdout.buffer, config)


def _run_beads_hook(args: argparse.Namespace, event: str) -> None:
    from .session_hooks import BeadsHooks, StreamSessionClient

    _configure_logging(args.verbose)
    hooks = BeadsHooks(StreamSessionClient(sys.stdout))
    hooks.dispatch(event, args.session_id)


if __name__ == "__main__":
    main()
