"""CLI entry point for the Open Access Explorer server and index tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from oaexplorer.models.record import Source

if TYPE_CHECKING:
    from oaexplorer.config.settings import Settings
    from oaexplorer.core.engine import ExplorerEngine

_T = TypeVar("_T")

_SOURCES = [source.value for source in Source]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oaexplorer",
        description="Open Access Explorer: metasearch over open-access scholarly sources",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"oaexplorer {_get_version()}",
    )
    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", type=str, default=None, help="Server bind address (overrides config)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Server port (overrides config)")
    serve.add_argument("--workers", "-w", type=int, default=None, help="Number of worker processes")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    commands.add_parser("seed", help="Index the built-in sample records")

    ingest = commands.add_parser("ingest", help="Fetch records from the sources and index them")
    query = ingest.add_mutually_exclusive_group(required=True)
    query.add_argument("--q", type=str, help="Keywords or title")
    query.add_argument("--doi", type=str, help="DOI to look up")
    ingest.add_argument("--year-from", type=int, default=None, help="Lowest publication year")
    ingest.add_argument("--year-to", type=int, default=None, help="Highest publication year")
    ingest.add_argument(
        "--source",
        action="append",
        choices=_SOURCES,
        default=None,
        help="Restrict to a source (repeatable; default: all enabled)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = _load_settings(args)

    from oaexplorer.observability.logging import setup_logging

    setup_logging(settings.observability)

    command = args.command or "serve"
    if command == "serve":
        _serve(settings, args)
    elif command == "seed":
        count = asyncio.run(_with_engine(settings, _seed))
        print(json.dumps({"indexed": count}))
    elif command == "ingest":
        result = asyncio.run(_with_engine(settings, lambda engine: _ingest(engine, args)))
        print(json.dumps(result, indent=2))


def _load_settings(args: argparse.Namespace) -> Settings:
    from oaexplorer.config.settings import Settings

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    if args.log_level:
        settings.observability.log_level = args.log_level
    if getattr(args, "host", None):
        settings.server.host = args.host
    if getattr(args, "port", None):
        settings.server.port = args.port
    if getattr(args, "workers", None):
        settings.server.workers = args.workers
    return settings


def _serve(settings: Settings, args: argparse.Namespace) -> None:
    _check_port(settings.server.host, settings.server.port)

    import uvicorn

    from oaexplorer.api.app import CONFIG_FILE_ENV, LOG_LEVEL_ENV, create_app

    reload = getattr(args, "reload", False)
    workers = settings.server.workers if not reload else 1
    options: dict[str, Any] = {
        "host": settings.server.host,
        "port": settings.server.port,
        "log_level": settings.observability.log_level.lower(),
    }
    if not reload and workers == 1:
        uvicorn.run(create_app(settings), **options)
        return

    # Reloaded and worker processes build their own app from the environment
    if args.config:
        os.environ[CONFIG_FILE_ENV] = str(Path(args.config).resolve())
    if args.log_level:
        os.environ[LOG_LEVEL_ENV] = args.log_level
    uvicorn.run(
        "oaexplorer.api.app:create_app",
        factory=True,
        workers=workers,
        reload=reload,
        **options,
    )


async def _with_engine(settings: Settings, action: Callable[[ExplorerEngine], Awaitable[_T]]) -> _T:
    from oaexplorer.core.engine import ExplorerEngine

    engine = ExplorerEngine(settings)
    await engine.initialize()
    try:
        return await action(engine)
    finally:
        await engine.shutdown()


async def _seed(engine: ExplorerEngine) -> int:
    return await engine.seed()


async def _ingest(engine: ExplorerEngine, args: argparse.Namespace) -> dict[str, object]:
    from oaexplorer.models.response import IngestRequest

    request = IngestRequest(
        q=args.q,
        doi=args.doi,
        year_from=args.year_from,
        year_to=args.year_to,
        sources=args.source,
    )
    response = await engine.ingest(request)
    return response.model_dump(mode="json", by_alias=True)


def _check_port(host: str, port: int) -> None:
    """Check if the port is available. If not, print the blocking process and exit."""
    import socket
    import subprocess

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host if host != "0.0.0.0" else "127.0.0.1", port))
    except OSError:
        print(f"\n{'=' * 60}", file=sys.stderr)
        print(f"  ERROR: Port {port} is already in use!", file=sys.stderr)
        print(f"{'=' * 60}", file=sys.stderr)

        try:
            result = subprocess.run(
                ["lsof", "-i", f":{port}", "-P", "-n"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            if result.stdout.strip():
                print(f"\n  Processes using port {port}:\n", file=sys.stderr)
                for line in result.stdout.strip().splitlines():
                    print(f"    {line}", file=sys.stderr)
            else:
                print(f"\n  Could not identify the process using port {port}.", file=sys.stderr)
        except (subprocess.TimeoutExpired, FileNotFoundError):
            print(f"\n  Run 'lsof -i :{port}' to find the process.", file=sys.stderr)

        print(f"\n{'=' * 60}\n", file=sys.stderr)
        sys.exit(1)
    finally:
        sock.close()


def _get_version() -> str:
    from oaexplorer import __version__

    return __version__


if __name__ == "__main__":
    main()
