"""
XtreamTV command line.

Thin wrapper over ``ProviderClient`` that prints JSON to stdout. Logs go
to stderr and the configured log file.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from xtreamtv import __version__
from xtreamtv.config import XtreamTVConfig, load_config
from xtreamtv.errors import ConfigurationError, ProviderError, StorageError
from xtreamtv.provider import ProviderClient
from xtreamtv.utils.logging_setup import setup_logging_from_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xtreamtv",
        description="Query an Xtream provider and manage watch progress",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s auth
  %(prog)s streams --category 5
  %(prog)s epg 1234 --limit 8
  %(prog)s url movie 42 --ext mkv
  %(prog)s progress set movie 42 1200 5400
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("auth", help="Log in and show account info")
    commands.add_parser("categories", help="List live categories")

    streams = commands.add_parser("streams", help="List live streams")
    streams.add_argument("--category", help="Only streams in this category id")

    epg = commands.add_parser("epg", help="Show program guide for a stream")
    epg.add_argument("stream_id")
    epg.add_argument("--limit", type=_positive_int, default=24, help="Maximum entries (default: 24)")

    movie = commands.add_parser("movie", help="Show movie metadata and tracks")
    movie.add_argument("movie_id")

    url = commands.add_parser("url", help="Build a direct playback URL")
    url.add_argument("kind", choices=["live", "movie", "series"])
    url.add_argument("content_id")
    url.add_argument("--ext", help="Container extension, e.g. ts, m3u8, mkv")

    progress = commands.add_parser("progress", help="Manage watch progress")
    actions = progress.add_subparsers(dest="action", required=True)

    get = actions.add_parser("get", help="Show saved position")
    get.add_argument("kind", choices=["movie", "series"])
    get.add_argument("content_id")

    save = actions.add_parser("set", help="Save a position")
    save.add_argument("kind", choices=["movie", "series"])
    save.add_argument("content_id")
    save.add_argument("position", type=float)
    save.add_argument("duration", type=float)

    clear = actions.add_parser("clear", help="Delete saved positions")
    clear.add_argument("kind", nargs="?", choices=["movie", "series"])
    clear.add_argument("content_id", nargs="?")
    clear.add_argument("--all", action="store_true", help="Delete every saved position")

    actions.add_parser("list", help="List saved positions, newest first")

    return parser


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    return value


async def run_command(args: argparse.Namespace, client: ProviderClient) -> Any:
    """Execute one parsed command and return a JSON-serializable result."""
    command = args.command

    if command == "auth":
        ok = await client.authenticate()
        return {
            "authenticated": ok,
            "session": _to_json(client.session) if client.session else None,
        }
    if command == "categories":
        return _to_json(await client.list_live_categories())
    if command == "streams":
        return _to_json(await client.list_live_streams(args.category))
    if command == "epg":
        return _to_json(await client.get_epg(args.stream_id, limit=args.limit))
    if command == "movie":
        return _to_json(await client.get_movie_info(args.movie_id))
    if command == "url":
        builders = {
            "live": client.get_live_stream_url,
            "movie": client.get_movie_stream_url,
            "series": client.get_series_stream_url,
        }
        return {"url": builders[args.kind](args.content_id, args.ext)}
    if command == "progress":
        return await _run_progress(args, client)

    raise ValueError(f"Unknown command: {command}")


async def _run_progress(args: argparse.Namespace, client: ProviderClient) -> Any:
    store = client.progress_store
    action = args.action

    if action == "get":
        record = await store.get_record(args.kind, args.content_id)
        return _to_json(record) if record else {
            "type": args.kind,
            "id": args.content_id,
            "position": await client.get_watch_progress(args.kind, args.content_id),
        }
    if action == "set":
        record = await store.save_progress(args.kind, args.content_id, args.position, args.duration)
        return _to_json(record)
    if action == "clear":
        if args.all:
            await store.clear_all()
            return {"cleared": "all"}
        if not args.kind or not args.content_id:
            raise ConfigurationError("progress clear needs KIND and ID, or --all")
        return {"cleared": await store.clear_progress(args.kind, args.content_id)}
    if action == "list":
        return _to_json(await store.list_records())

    raise ValueError(f"Unknown progress action: {action}")


async def run_async(
    args: argparse.Namespace,
    config: XtreamTVConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> int:
    """Build a client from ``config``, run the command and print its result."""
    try:
        client = ProviderClient.from_config(config, http_client=http_client)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG

    try:
        async with client:
            result = await run_command(args, client)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG
    except (ProviderError, StorageError) as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_FAILURE

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if args.command == "auth" and not result["authenticated"]:
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Command line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (ValidationError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    logging_config = config.logging
    if args.verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    setup_logging_from_config(logging_config)

    return asyncio.run(run_async(args, config))


__all__ = ["build_parser", "main", "run_async", "run_command"]
