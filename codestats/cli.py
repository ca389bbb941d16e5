"""CLI entrypoints for codestats commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import CodeStatsConfig, ConfigError, load_config
from .dto_violations import MODE_STATIC, MODE_THRESHOLDS, ExtractorError
from .git.history import HistoryError
from .logging import configure_logging
from .orchestrator import Orchestrator, resolve_start
from .stores.snapshots import CLIENT_SIDE, SERVER_SIDE


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_history_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-s",
        "--start",
        help="Generate reports starting from this historical date (YYYY-MM-DD).",
    )
    parser.add_argument(
        "-r",
        "--relative",
        help='Generate reports for a relative time period (e.g. "24h", "7d", "2w", "1m", "1y").',
    )
    parser.add_argument(
        "-n",
        "--commits",
        type=int,
        default=None,
        help="Analyze at most this many commits of the selected range.",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=1,
        help="Analyze every Nth commit of the range (default: 1).",
    )


def _add_location_options(
    parser: argparse.ArgumentParser, *, output_flags: tuple[str, ...] = ("--output",)
) -> None:
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .codestats.yml or the directory containing it (defaults to current directory).",
    )
    parser.add_argument(
        "--repo",
        default=None,
        help="Override the analyzed repository directory.",
    )
    parser.add_argument(
        *output_flags,
        dest="output",
        default=None,
        help="Override the snapshot output directory.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codestats",
        description="Count code patterns per module and write timestamped JSON snapshots.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    client_parser = subparsers.add_parser(
        "client",
        help="Component inventory, change detection and decoratorless API reports.",
    )
    _add_verbose_option(client_parser, suppress_default=True)
    _add_location_options(client_parser)
    _add_history_options(client_parser)

    server_parser = subparsers.add_parser(
        "server",
        help="DTO violations report for the server code.",
    )
    _add_verbose_option(server_parser, suppress_default=True)
    _add_location_options(server_parser)
    _add_history_options(server_parser)
    server_parser.add_argument(
        "--thresholds",
        action="store_true",
        help="Use threshold parsing mode (counts only, no details).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the snapshots and derived insights over HTTP.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_location_options(serve_parser, output_flags=("--output", "--data"))
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def _load(args: argparse.Namespace) -> CodeStatsConfig:
    config = load_config(Path(args.config))
    if args.repo:
        config.repo_dir = Path(args.repo).expanduser().resolve()
    if args.output:
        config.output_dir = Path(args.output).expanduser().resolve()
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codestats commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file).expanduser() if args.log_file else None
    logger = configure_logging(verbose=bool(args.verbose), log_file=log_file)

    try:
        config = _load(args)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    if args.command == "serve":
        from .service.app import run_service

        run_service(config, host=args.host, port=args.port)
        return

    side = CLIENT_SIDE if args.command == "client" else SERVER_SIDE
    mode = MODE_THRESHOLDS if getattr(args, "thresholds", False) else MODE_STATIC
    orchestrator = Orchestrator(config)

    try:
        start = resolve_start(args.start, args.relative)
        if start is None:
            if side == CLIENT_SIDE:
                paths = orchestrator.generate_client_reports()
            else:
                paths = [orchestrator.generate_server_report(mode)]
            for path in paths:
                print(_relativize(path))
            return

        summary = orchestrator.run_history(
            start,
            side=side,
            mode=mode,
            interval=args.interval,
            limit=args.commits,
        )
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    except HistoryError as exc:
        parser.exit(1, f"{exc}\n")
    except ExtractorError as exc:
        parser.exit(1, f"Failed to extract violations: {exc}\n")

    print(f"Successful: {summary.successes}")
    print(f"Failed: {summary.failures}")
    if not summary.restored:
        logger.warning("Working tree could not be restored; check %s manually", config.repo_dir)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
