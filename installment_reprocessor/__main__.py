"""Command line entry point: run the control API or validate the configuration."""

import argparse
import os
import sys
from typing import Optional, Sequence

import uvicorn

from installment_reprocessor.config import DEFAULT_CONFIG_PATH, Config, ConfigurationError
from installment_reprocessor.utils.durations import format_duration


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="installment-reprocessor",
        description="Retry lifecycle for subscription installments",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"), help="Bind address (default: 0.0.0.0)")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH),
        help=f"Path to reprocessing.yaml (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Restart on code changes (development only)",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the configuration, print the reprocessing policy and exit",
    )
    return parser


def describe_policy(config: Config) -> str:
    """Human readable summary of the configured reprocessing policy."""
    interval = config.reprocessing.reprocessing_interval
    maximum = config.reprocessing.maximum_reprocessing_time
    lines = [
        f"Config: {config.config_path}",
        f"Reprocessing interval: {format_duration(interval) if interval is not None else 'none (failed installments are not retried)'}",
        f"Maximum reprocessing time: {format_duration(maximum) if maximum is not None else 'unlimited'}",
        f"Locale: {config.locale}",
        f"Events: {'enabled, topic ' + config.pubsub_topic if config.events_enabled else 'disabled'}",
    ]
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # The app factory reads these when uvicorn imports it
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    try:
        config = Config(args.config)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.check_config:
        print(describe_policy(config))
        return 0

    if args.log_format == "console":
        print(describe_policy(config))
        print(f"Listening on http://{args.host}:{args.port}")

    try:
        uvicorn.run(
            "installment_reprocessor.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down...")
    except Exception as e:
        print(f"Failed to start reprocessor: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
