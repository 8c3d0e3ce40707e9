"""Entry point for running the bot core as a module."""

import argparse
import os
import sys

import uvicorn

from rental_bot import __version__
from rental_bot.config import DEFAULT_CONFIG_PATH, Config, ConfigurationError
from rental_bot.repositories.record_store import RecordStore, StorageInitializationError


def build_parser() -> argparse.ArgumentParser:
    """Command line options; each default can also come from the environment."""
    parser = argparse.ArgumentParser(
        prog="rental-bot",
        description="Rental Bot Core - rental, trial and moderation state for a group-chat bot",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"), help="Bind address (env HOST)")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")), help="Bind port (env PORT)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (env LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (env LOG_FORMAT)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", str(DEFAULT_CONFIG_PATH)),
        help="Path to settings.yaml (env CONFIG_PATH)",
    )
    parser.add_argument(
        "--virtual-time",
        action="store_true",
        default=os.getenv("VIRTUAL_TIME", "false").lower() == "true",
        help="Run on a virtual clock that the control API can advance (env VIRTUAL_TIME)",
    )
    return parser


def print_banner(args: argparse.Namespace) -> None:
    rows = [
        ("Host", args.host),
        ("Port", args.port),
        ("Log level", args.log_level),
        ("Config", args.config),
        ("Virtual time", args.virtual_time),
    ]
    print("=" * 60)
    print(f"Rental Bot Core v{__version__}")
    print("-" * 60)
    for label, value in rows:
        print(f"{label + ':':<14}{value}")
    print("=" * 60)


def main() -> None:
    """Validate configuration and storage, then serve the control API."""
    args = build_parser().parse_args()

    # The app factory reads these when uvicorn imports it
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config
    os.environ["VIRTUAL_TIME"] = "true" if args.virtual_time else "false"

    # Config and storage must be usable before the server starts
    try:
        settings = Config(args.config).settings
        RecordStore(settings.storage.data_dir, settings.storage.resolved_backup_dir).initialize()
    except (ConfigurationError, StorageInitializationError) as e:
        print(f"Failed to start: {e}", file=sys.stderr)
        sys.exit(1)

    if args.log_format == "console":
        print_banner(args)

    try:
        uvicorn.run(
            "rental_bot.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start bot core: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
